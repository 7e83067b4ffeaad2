import pytest

from fair_launch.errors import (
    ErrorCategory,
    ErrorKind,
    ProgramRevert,
    RpcError,
    ValidationError,
    classify,
    classify_exception,
    extract_custom_code,
)


def test_structured_codes_take_precedence():
    assert classify(311, "custom program error: 0x135").kind is ErrorKind.SOLD_OUT
    assert classify(312).kind is ErrorKind.NOT_STARTED_YET
    assert classify(309).kind is ErrorKind.PROGRAM_INSUFFICIENT_FUNDS
    c = classify(305)
    assert c.kind is ErrorKind.PROGRAM_ERROR
    assert c.name == "NumericalOverflowError"


def test_unseen_code_is_unknown_not_a_crash():
    c = classify(6001, "custom program error: 0x1771")
    assert c.kind is ErrorKind.UNKNOWN
    assert c.message == "custom program error: 0x1771"
    assert c.code == 6001


@pytest.mark.parametrize(
    "message, kind",
    [
        ("Transaction simulation failed: custom program error: 0x137", ErrorKind.SOLD_OUT),
        ("custom program error: 0x138", ErrorKind.NOT_STARTED_YET),
        ("custom program error: 0x135", ErrorKind.PROGRAM_INSUFFICIENT_FUNDS),
        ("Attempt to debit an account but found no record of a prior credit. Insufficient funds", ErrorKind.PROGRAM_INSUFFICIENT_FUNDS),
    ],
)
def test_message_markers(message, kind):
    assert classify(None, message).kind is kind


def test_marker_at_start_of_message_still_matches():
    assert classify(None, "0x135 insufficient lamports").kind is ErrorKind.PROGRAM_INSUFFICIENT_FUNDS


def test_no_message_is_timeout():
    assert classify(None, None).kind is ErrorKind.TIMEOUT
    assert classify(None, "").kind is ErrorKind.TIMEOUT


def test_unrecognised_message_preserved():
    c = classify(None, "Blockhash not found")
    assert c.kind is ErrorKind.UNKNOWN
    assert c.message == "Blockhash not found"


def test_categories():
    assert ErrorKind.INSUFFICIENT_FUNDS.category is ErrorCategory.VALIDATION
    assert ErrorKind.SOLD_OUT.category is ErrorCategory.PROGRAM
    assert ErrorKind.NETWORK_ERROR.category is ErrorCategory.NETWORK
    assert ErrorKind.TIMEOUT.category is ErrorCategory.TIMEOUT
    assert ErrorKind.UNKNOWN.category is ErrorCategory.UNKNOWN
    assert ErrorKind.NETWORK_ERROR.retry_safe
    assert not ErrorKind.TIMEOUT.retry_safe
    assert ErrorKind.TIMEOUT.refresh_required
    assert ErrorKind.ALREADY_CLAIMED.refresh_required
    assert not ErrorKind.WRONG_PHASE.refresh_required


def test_classify_exception():
    assert classify_exception(ProgramRevert("failed", code=311)).kind is ErrorKind.SOLD_OUT
    assert classify_exception(RpcError("connection refused")).kind is ErrorKind.NETWORK_ERROR
    assert classify_exception(ValidationError(ErrorKind.NO_TICKET, "x")).kind is ErrorKind.NO_TICKET
    assert classify_exception(RuntimeError("odd")).kind is ErrorKind.UNKNOWN
    assert classify_exception(RuntimeError()).kind is ErrorKind.TIMEOUT


def test_extract_custom_code():
    assert extract_custom_code({"InstructionError": [0, {"Custom": 311}]}) == 311
    assert extract_custom_code({"InstructionError": [1, "InvalidAccountData"]}) is None
    assert extract_custom_code("AccountInUse") is None
    assert extract_custom_code(None) is None
