"""Tests for mail records and their encoding."""

import json
import os

import pytest

from trapmail.errors import DeserializationError, LoadError, SerializationError
from trapmail.mail import CliOptions, InvalidBody, Mail, MailBody, Utf8Body


def make_mail(raw: bytes = b"body", **kwargs) -> Mail:
    fields = dict(
        cli_options=CliOptions(ignore_dots=True, inline_recipients=True, addresses=("a@b",)),
        pid=6299,
        ppid=5913,
        body=MailBody.from_raw(raw),
        timestamp_us=1575911147000313,
    )
    fields.update(kwargs)
    return Mail(**fields)


class TestMailBody:
    def test_text(self):
        body = MailBody.from_raw(b"Subject: hi\n\nbody")
        assert body == Utf8Body("Subject: hi\n\nbody")
        assert str(body) == "Subject: hi\n\nbody"

    def test_non_ascii_text(self):
        body = MailBody.from_raw("Grüße".encode())
        assert body == Utf8Body("Grüße")

    def test_invalid(self):
        body = MailBody.from_raw(bytes([0xFF, 0xFE, 0x00]))
        assert isinstance(body, InvalidBody)
        assert body.raw == b"\xff\xfe\x00"

    def test_invalid_keeps_valid_prefix(self):
        raw = b"Subject: hi\n\n\xc3"
        body = MailBody.from_raw(raw)
        assert isinstance(body, InvalidBody)
        assert body.raw == raw

    def test_invalid_str(self):
        assert str(MailBody.from_raw(b"ab\xff")) == "[invalid UTF-8]ab�"

    def test_empty(self):
        assert MailBody.from_raw(b"") == Utf8Body("")

    def test_base_is_abstract(self):
        with pytest.raises(TypeError):
            MailBody()

    @pytest.mark.parametrize("raw", [
        b"",
        b"plain ascii\r\n.\r\n",
        "ünïcödé ✓".encode(),
        bytes([0xFF, 0xFE, 0x00]),
        bytes(range(256)),
    ])
    def test_json_roundtrip(self, raw):
        body = MailBody.from_raw(raw)
        value = json.loads(json.dumps(body.to_json_value()))
        assert MailBody.from_json_value(value).raw == raw

    def test_json_tags(self):
        assert MailBody.from_raw(b"hi").to_json_value() == {"Utf8": "hi"}
        assert MailBody.from_raw(b"\xff\xfe\x00").to_json_value() == {"Invalid": [255, 254, 0]}

    @pytest.mark.parametrize("value", [
        "hi",
        {},
        {"Utf8": "a", "Invalid": []},
        {"Utf8": 3},
        {"Invalid": [256]},
        {"Invalid": ["a"]},
        {"Html": "<p>"},
    ])
    def test_json_rejects(self, value):
        with pytest.raises(ValueError):
            MailBody.from_json_value(value)


class TestMailNew:
    def test_process_ids(self):
        mail = Mail.new(CliOptions(), b"hi")
        assert mail.pid == os.getpid()
        assert mail.ppid == os.getppid()
        assert mail.body == Utf8Body("hi")

    def test_file_name(self):
        mail = make_mail()
        assert mail.file_name() == "trapmail_1575911147000313_5913_6299.json"

    def test_sequential_names_distinct_and_ordered(self):
        mails = [Mail.new(CliOptions(), b"x") for _ in range(50)]
        names = [m.file_name() for m in mails]
        assert len(set(names)) == len(names)
        assert sorted(names) == names

    def test_names_sort_by_timestamp(self):
        timestamps = [1575911147313470, 1575911147313471, 1575911148000000, 1699999999999999]
        mails = [make_mail(timestamp_us=ts, pid=100 - i, ppid=i) for i, ts in enumerate(timestamps)]
        names = sorted(m.file_name() for m in reversed(mails))
        assert names == [m.file_name() for m in mails]


class TestMailFormat:
    def test_to_dict(self):
        data = make_mail(b"Subject: hi\n\nbody").to_dict()
        assert data == {
            "cli_options": {
                "debug": False,
                "ignore_dots": True,
                "inline_recipients": True,
                "addresses": ["a@b"],
                "dump": None,
                "sender": None,
                "full_name": None,
                "options": [],
                "store": None,
            },
            "pid": 6299,
            "ppid": 5913,
            "body": {"Utf8": "Subject: hi\n\nbody"},
            "timestamp_us": 1575911147000313,
        }

    def test_json_is_pretty(self):
        content = make_mail().to_json()
        assert content.startswith(b"{\n  \"cli_options\"")

    def test_json_roundtrip(self):
        mail = make_mail(
            b"\xff\xfe\x00",
            cli_options=CliOptions(debug=True, sender="me@example.com", options=("i", "em")),
        )
        assert Mail.from_dict(json.loads(mail.to_json())) == mail

    def test_unserializable(self):
        mail = make_mail(cli_options=CliOptions(addresses=(object(),)))
        with pytest.raises(SerializationError):
            mail.to_json()

    def test_surrogate_escaped_argument(self):
        # Non-UTF-8 argv bytes reach Python as lone surrogates
        mail = make_mail(cli_options=CliOptions(addresses=("\udcff@b",)))
        with pytest.raises(SerializationError):
            mail.to_json()

    def test_str(self):
        text = str(make_mail(b"Subject: hi\n\nbody"))
        lines = text.splitlines()
        assert lines[0] == "Mail sent on 2019-12-09 17:05:47.000313 UTC from PID 6299 (PPID 5913)."
        assert "ignore_dots=True" in text
        assert "'a@b'" in text
        assert text.endswith("Subject: hi\n\nbody")

    def test_str_out_of_range(self):
        text = str(make_mail(timestamp_us=10**20))
        assert text.startswith(f"Mail sent on [cannot convert {10**20} to timestamp] UTC")


class TestMailLoad:
    def test_load(self, tmp_path):
        mail = make_mail(b"\xff\xfe\x00")
        path = tmp_path / mail.file_name()
        path.write_bytes(mail.to_json())
        assert Mail.load(path) == mail
        assert Mail.load(str(path)) == mail

    def test_load_minimal_options(self, tmp_path):
        """Records written without the newer option fields still load."""
        path = tmp_path / "trapmail_1575911147313470_5913_6299.json"
        path.write_text(json.dumps({
            "cli_options": {
                "debug": True,
                "ignore_dots": True,
                "inline_recipients": True,
                "addresses": ["foo@bar"],
                "dump": None,
            },
            "pid": 6299,
            "ppid": 5913,
            "body": {"Utf8": "To: Santa Clause <santa@example.com>\n"},
            "timestamp_us": 1575911147313470,
        }, indent=2))
        mail = Mail.load(path)
        assert mail.cli_options == CliOptions(
            debug=True, ignore_dots=True, inline_recipients=True, addresses=("foo@bar",),
        )
        assert mail.body == Utf8Body("To: Santa Clause <santa@example.com>\n")

    def test_load_missing(self, tmp_path):
        path = tmp_path / "nope.json"
        with pytest.raises(LoadError) as exc_info:
            Mail.load(path)
        assert exc_info.value.path == path
        assert str(exc_info.value).startswith("Could not load mail: ")

    @pytest.mark.parametrize("content", [
        b"",
        b"{\"cli_options\": {",
        b"[]",
        b"\xff\xfe",
        b"{\"cli_options\": {}, \"pid\": 1, \"ppid\": 2, \"body\": {\"Utf8\": \"x\"}}",
        b"{\"cli_options\": {}, \"pid\": true, \"ppid\": 2, \"body\": {\"Utf8\": \"x\"}, \"timestamp_us\": 1}",
        b"{\"cli_options\": {\"debug\": \"yes\"}, \"pid\": 1, \"ppid\": 2, \"body\": {\"Utf8\": \"x\"}, \"timestamp_us\": 1}",
    ])
    def test_load_invalid(self, tmp_path, content):
        path = tmp_path / "bad.json"
        path.write_bytes(content)
        with pytest.raises(DeserializationError):
            Mail.load(path)
