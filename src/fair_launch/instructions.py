"""
Builders for the instructions the orchestrator submits.

Fair launch and candy machine are Anchor programs: instruction data is the
8-byte sighash of `global:<name>` followed by Borsh-encoded arguments.
Signing is not done here; the sender adds signatures (and, for mint_nft,
the freshly generated mint and its metadata accounts).
"""

from __future__ import annotations

import hashlib
from typing import List, Optional

from borsh_construct import CStruct, U64, U8
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .accounts import AccountSnapshot, MintState
from .errors import ErrorKind, ValidationError
from .project_constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    CANDY_MACHINE_PROGRAM_ID,
    FAIR_LAUNCH_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    SYSVAR_CLOCK_ID,
    SYSVAR_RENT_ID,
    TOKEN_PROGRAM_ID,
)

PurchaseTicketArgsLayout = CStruct("bump" / U8, "amount" / U64)
AdjustTicketArgsLayout = CStruct("amount" / U64)


def sighash(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


def _meta(
    address: Optional[str], role: str, signer: bool = False, writable: bool = False
) -> AccountMeta:
    if not address:
        raise ValidationError(
            ErrorKind.MISSING_ACCOUNT, f"Missing {role} address in snapshot."
        )
    return AccountMeta(
        Pubkey.from_string(address), is_signer=signer, is_writable=writable
    )


def _program(address: str) -> AccountMeta:
    return AccountMeta(Pubkey.from_string(address), is_signer=False, is_writable=False)


def purchase_ticket(snapshot: AccountSnapshot, lamports: int) -> Instruction:
    a = snapshot.addresses
    if a.ticket_bump is None:
        raise ValidationError(
            ErrorKind.MISSING_ACCOUNT, "Ticket bump unknown; refresh with a wallet."
        )
    accounts = [
        _meta(a.ticket, "ticket", writable=True),
        _meta(a.fair_launch, "fair launch", writable=True),
        _meta(a.treasury, "treasury", writable=True),
        _meta(a.buyer, "buyer", signer=True, writable=True),
        _meta(a.buyer, "payer", signer=True, writable=True),
        _program(SYSTEM_PROGRAM_ID),
        _program(SYSVAR_RENT_ID),
        _program(SYSVAR_CLOCK_ID),
    ]
    data = sighash("purchase_ticket") + PurchaseTicketArgsLayout.build(
        {"bump": a.ticket_bump, "amount": lamports}
    )
    return Instruction(Pubkey.from_string(FAIR_LAUNCH_PROGRAM_ID), data, accounts)


def adjust_ticket(snapshot: AccountSnapshot, lamports: int) -> Instruction:
    """Change an existing bid. A zero amount withdraws it."""
    a = snapshot.addresses
    accounts = [
        _meta(a.ticket, "ticket", writable=True),
        _meta(a.fair_launch, "fair launch", writable=True),
        _meta(a.lottery, "lottery"),
        _meta(a.treasury, "treasury", writable=True),
        _meta(a.buyer, "buyer", signer=True, writable=True),
        _program(SYSTEM_PROGRAM_ID),
        _program(SYSVAR_CLOCK_ID),
    ]
    data = sighash("adjust_ticket") + AdjustTicketArgsLayout.build({"amount": lamports})
    return Instruction(Pubkey.from_string(FAIR_LAUNCH_PROGRAM_ID), data, accounts)


def create_associated_token_account(snapshot: AccountSnapshot) -> Instruction:
    a = snapshot.addresses
    accounts = [
        _meta(a.buyer, "payer", signer=True, writable=True),
        _meta(a.buyer_token_account, "buyer token account", writable=True),
        _meta(a.buyer, "owner"),
        _meta(a.token_mint, "token mint"),
        _program(SYSTEM_PROGRAM_ID),
        _program(TOKEN_PROGRAM_ID),
        _program(SYSVAR_RENT_ID),
    ]
    return Instruction(Pubkey.from_string(ASSOCIATED_TOKEN_PROGRAM_ID), b"", accounts)


def punch_ticket(snapshot: AccountSnapshot) -> Instruction:
    a = snapshot.addresses
    accounts = [
        _meta(a.ticket, "ticket", writable=True),
        _meta(a.fair_launch, "fair launch", writable=True),
        _meta(a.lottery, "lottery"),
        _meta(a.buyer, "payer", signer=True),
        _meta(a.buyer_token_account, "buyer token account", writable=True),
        _meta(a.token_mint, "token mint", writable=True),
        _program(TOKEN_PROGRAM_ID),
    ]
    return Instruction(
        Pubkey.from_string(FAIR_LAUNCH_PROGRAM_ID), sighash("punch_ticket"), accounts
    )


def receive_refund(snapshot: AccountSnapshot) -> Instruction:
    a = snapshot.addresses
    accounts = [
        _meta(a.fair_launch, "fair launch", writable=True),
        _meta(a.treasury, "treasury", writable=True),
        _meta(a.buyer, "buyer", signer=True, writable=True),
        _meta(a.buyer_token_account, "buyer token account", writable=True),
        _meta(a.token_mint, "token mint", writable=True),
        _program(TOKEN_PROGRAM_ID),
        _program(SYSTEM_PROGRAM_ID),
        _program(SYSVAR_CLOCK_ID),
    ]
    return Instruction(
        Pubkey.from_string(FAIR_LAUNCH_PROGRAM_ID), sighash("receive_refund"), accounts
    )


def mint_nft(snapshot: AccountSnapshot, mint: MintState) -> Instruction:
    a = snapshot.addresses
    accounts: List[AccountMeta] = [
        _meta(mint.config, "candy machine config"),
        _meta(a.candy_machine, "candy machine", writable=True),
        _meta(a.buyer, "payer", signer=True, writable=True),
        _meta(mint.wallet, "candy machine wallet", writable=True),
        _program(TOKEN_PROGRAM_ID),
        _program(SYSTEM_PROGRAM_ID),
        _program(SYSVAR_RENT_ID),
        _program(SYSVAR_CLOCK_ID),
    ]
    # Fair launch gated machines burn one raffle token per mint.
    if a.buyer_token_account and a.token_mint:
        accounts += [
            _meta(a.buyer_token_account, "buyer token account", writable=True),
            _meta(a.buyer, "transfer authority", signer=True),
            _meta(a.token_mint, "token mint", writable=True),
        ]
    return Instruction(
        Pubkey.from_string(CANDY_MACHINE_PROGRAM_ID), sighash("mint_nft"), accounts
    )
