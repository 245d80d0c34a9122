import pytest

from cnpjsync.errors import (
    CompanyLookupError,
    FailureKind,
    InvalidIdentifier,
    NotFound,
    RequestRejected,
    ResolutionFailed,
    SellerNotFound,
    Unauthorized,
    Unavailable,
    classify_failure,
    is_credential_failure,
    is_retryable,
)


@pytest.mark.parametrize(
    "error, expected",
    [
        (InvalidIdentifier("CNPJ inválido: '1'"), FailureKind.INVALID_ID),
        (NotFound("sem registro", status_code=404), FailureKind.NOT_FOUND),
        (SellerNotFound("vendedor 9"), FailureKind.NOT_FOUND),
        (RequestRejected("bad request", status_code=400), FailureKind.VALIDATION_ERROR),
        (RequestRejected("CNPJ inválido", status_code=400), FailureKind.INVALID_ID),
        (Unavailable("timeout"), FailureKind.TRANSIENT),
        (Unavailable("JSON inválido", transient=False), FailureKind.OTHER),
        (Unauthorized("token"), FailureKind.OTHER),
        (CompanyLookupError("gone", status_code=404), FailureKind.NOT_FOUND),
        (CompanyLookupError("bad", status_code=400), FailureKind.VALIDATION_ERROR),
        (RuntimeError("invalid CNPJ 123"), FailureKind.INVALID_ID),
        (RuntimeError("boom"), FailureKind.OTHER),
    ],
)
def test_classify_failure(error: BaseException, expected: FailureKind) -> None:
    assert classify_failure(error) is expected


def test_resolution_failed_prefers_not_found() -> None:
    error = ResolutionFailed("11222333000181", Unavailable("503"), NotFound("404"))
    assert classify_failure(error) is FailureKind.NOT_FOUND
    assert error.primary_error.args == ("503",)
    assert "primary: 503" in str(error)


def test_resolution_failed_of_two_transient_errors_is_transient() -> None:
    error = ResolutionFailed("11222333000181", Unavailable("429", rate_limited=True), Unavailable("reset"))
    assert classify_failure(error) is FailureKind.TRANSIENT
    assert is_retryable(error)


def test_resolution_failed_with_not_found_is_not_retryable() -> None:
    error = ResolutionFailed("11222333000181", Unavailable("reset"), NotFound("404"))
    assert not is_retryable(error)


@pytest.mark.parametrize(
    "error, retryable",
    [
        (Unavailable("reset"), True),
        (Unavailable("bad json", transient=False), False),
        (NotFound("404"), False),
        (Unauthorized("401"), False),
        (RuntimeError("other"), False),
    ],
)
def test_is_retryable(error: BaseException, retryable: bool) -> None:
    assert is_retryable(error) is retryable


def test_credential_failure_requires_every_provider() -> None:
    assert is_credential_failure(Unauthorized("401"))
    assert is_credential_failure(ResolutionFailed("1", Unauthorized("a"), Unauthorized("b")))
    assert not is_credential_failure(ResolutionFailed("1", Unauthorized("a"), NotFound("b")))
