import pytest

from dmmcast_dav.exception import check_response, get_status_code, ResolutionError, UpstreamStatusError


def test_check_response():
    resp = {"success": True, "data": 1}
    assert check_response(resp) is resp
    with pytest.raises(ResolutionError, match="not cached"):
        check_response({"success": False, "detail": "not cached"})
    with pytest.raises(ResolutionError, match="unexpected response"):
        check_response(["not", "a", "dict"])


def test_get_status_code():
    assert get_status_code(UpstreamStatusError(403, "Delete failed: nope")) == 403
    assert get_status_code(ValueError("x")) is None
