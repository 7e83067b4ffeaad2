from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Optional, Tuple

from solders.pubkey import Pubkey

from .accounts import (
    AccountSnapshot,
    Addresses,
    MintState,
    Ticket,
    decode_candy_machine,
    decode_fair_launch,
    decode_ticket,
)
from .errors import FairLaunchError, RpcError
from .project_constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    FAIR_LAUNCH_PREFIX,
    FAIR_LAUNCH_PROGRAM_ID,
    LOTTERY_SEED,
    TOKEN_PROGRAM_ID,
)
from .rpc import RpcClient

log = logging.getLogger(__name__)


def _find(seeds: list, program_id: str) -> Tuple[str, int]:
    address, bump = Pubkey.find_program_address(seeds, Pubkey.from_string(program_id))
    return str(address), bump


def ticket_address(token_mint: str, buyer: str) -> Tuple[str, int]:
    return _find(
        [
            FAIR_LAUNCH_PREFIX,
            bytes(Pubkey.from_string(token_mint)),
            bytes(Pubkey.from_string(buyer)),
        ],
        FAIR_LAUNCH_PROGRAM_ID,
    )


def lottery_address(token_mint: str) -> str:
    address, _ = _find(
        [FAIR_LAUNCH_PREFIX, bytes(Pubkey.from_string(token_mint)), LOTTERY_SEED],
        FAIR_LAUNCH_PROGRAM_ID,
    )
    return address


def associated_token_address(owner: str, mint: str) -> str:
    address, _ = _find(
        [
            bytes(Pubkey.from_string(owner)),
            bytes(Pubkey.from_string(TOKEN_PROGRAM_ID)),
            bytes(Pubkey.from_string(mint)),
        ],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return address


async def fetch_snapshot(
    rpc: RpcClient,
    fair_launch_id: str,
    buyer: Optional[str] = None,
    candy_machine_id: Optional[str] = None,
    now: Optional[int] = None,
) -> AccountSnapshot:
    """Read every account the client needs and decode them once.

    The fair launch account is mandatory. Token balance and candy machine
    reads are best effort: a failure is logged and the field left empty.
    """
    taken_at = int(time.time()) if now is None else now

    raw = await rpc.get_account_info(fair_launch_id)
    if raw is None:
        raise FairLaunchError(f"Fair launch account {fair_launch_id} not found.")
    state = decode_fair_launch(raw)
    runtime = replace(
        state.runtime, treasury_lamports=await rpc.get_balance(state.treasury)
    )

    lottery_id = lottery_address(state.token_mint)
    lottery = await rpc.get_account_info(lottery_id)

    ticket: Optional[Ticket] = None
    ticket_id: Optional[str] = None
    ticket_bump: Optional[int] = None
    token_account: Optional[str] = None
    wallet_lamports: Optional[int] = None
    held_token_balance: Optional[int] = None

    if buyer:
        wallet_lamports = await rpc.get_balance(buyer)
        ticket_id, ticket_bump = ticket_address(state.token_mint, buyer)
        ticket_raw = await rpc.get_account_info(ticket_id)
        if ticket_raw is not None:
            ticket = decode_ticket(ticket_raw)

        token_account = associated_token_address(buyer, state.token_mint)
        try:
            balance = await rpc.get_token_account_balance(token_account)
            held_token_balance = balance["amount"]
        except RpcError as e:
            # Usually the account simply does not exist yet.
            log.debug("Problem getting fair launch token balance: %s", e)

    mint: Optional[MintState] = None
    if candy_machine_id:
        try:
            cm_raw = await rpc.get_account_info(candy_machine_id)
            if cm_raw is not None:
                mint = decode_candy_machine(cm_raw, now=taken_at)
            else:
                log.warning("Candy machine %s not found.", candy_machine_id)
        except FairLaunchError as e:
            log.warning("Problem getting candy machine state: %s", e)
    else:
        log.debug("No candy machine detected in configuration.")

    return AccountSnapshot(
        addresses=Addresses(
            fair_launch=fair_launch_id,
            token_mint=state.token_mint,
            treasury=state.treasury,
            lottery=lottery_id,
            buyer=buyer,
            ticket=ticket_id,
            ticket_bump=ticket_bump,
            buyer_token_account=token_account,
            candy_machine=candy_machine_id,
        ),
        config=state.config,
        runtime=runtime,
        taken_at=taken_at,
        ticket=ticket,
        lottery=lottery,
        mint=mint,
        wallet_lamports=wallet_lamports,
        held_token_balance=held_token_balance,
    )
