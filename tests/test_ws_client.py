from hms_scheduler.ws_client import format_reply, parse_line


def test_parse_line_with_quoted_values():
    """Test that quoted field values keep their spaces."""
    action, fields = parse_line('Submit patient_name="Jane Roe" patient_phone=9876543210')

    assert action == "submit"
    assert fields == {"patient_name": "Jane Roe", "patient_phone": "9876543210"}


def test_parse_empty_line():
    assert parse_line("   ") == ("", {})


def test_format_reply():
    """Test rendering of prompts, validation errors and server errors."""
    reply = {"step": "collecting_doctor", "message": "Please select a doctor", "errors": ["doctor_id must be a number"]}

    assert format_reply(reply) == (
        "[collecting_doctor] Please select a doctor\n  ! doctor_id must be a number"
    )
    assert format_reply({"error": "Unknown or expired session"}) == "Server Error: Unknown or expired session"
