import pytest

from event_attendance.common.validators import optional_text, parse_enum, require_positive_int
from event_attendance.core.enums import CheckInMethod
from event_attendance.core.exceptions import ValidationError


def test_require_positive_int_accepts_numeric_strings():
    assert require_positive_int("12", "user_id") == 12
    assert require_positive_int(3, "user_id") == 3


@pytest.mark.parametrize("value", [True, False, None, "abc", 0, -4])
def test_require_positive_int_rejects(value):
    with pytest.raises(ValidationError):
        require_positive_int(value, "user_id")


def test_boolean_is_not_an_id():
    with pytest.raises(ValidationError, match="user_id must be an integer"):
        require_positive_int(True, "user_id")


def test_parse_enum_and_optional_text():
    assert parse_enum(CheckInMethod, " QR_CODE ", "method") == CheckInMethod.QR_CODE
    assert parse_enum(CheckInMethod, None, "method", default=CheckInMethod.MANUAL) == CheckInMethod.MANUAL
    with pytest.raises(ValidationError, match="method must be one of"):
        parse_enum(CheckInMethod, "fax", "method")
    assert optional_text("   ") is None
    assert optional_text(" Hall A ") == "Hall A"
