"""
Tests for the main pipeline module.

Tests cover:
- End-to-end pipeline runs against canned HTML
- The four-gazette bound on page fetches
- Per-page failure isolation and warnings
- Fatal index failures
- Envelope construction and the CLI entry point
"""

import json
from datetime import datetime, timezone

import pytest
from unittest.mock import Mock, patch

from kpsc_feed.fetch import FetchError
from kpsc_feed.main import (
    EXIT_FAILURE,
    EXIT_SUCCESS,
    FeedResult,
    build_envelope,
    build_error_envelope,
    main,
    run_pipeline,
    utc_timestamp,
)
from kpsc_feed.parse import NotificationItem
from kpsc_feed.utils import FeedConfig


ORIGIN = "https://www.keralapsc.gov.in"
INDEX_URL = f"{ORIGIN}/notifications"

GAZETTE_DAYS = ("25", "20", "15", "10", "05")


def gazette_url(day):
    return f"{ORIGIN}/extra-ordinary-gazette-date-{day}102025"


INDEX_HTML = "<html><body><ul>" + "".join(
    f'<li><a href="/extra-ordinary-gazette-date-{day}102025">'
    f"EXTRA ORDINARY GAZETTE DATE {day}/10/2025</a></li>"
    for day in GAZETTE_DAYS
) + "</ul></body></html>"


def gazette_html(day, cat_numbers, last_date="19-11-2025"):
    deadline = f"<p>Last date: {last_date}</p>" if last_date else ""
    links = "".join(
        f'<li><a href="/files/noti-{n}-25.pdf">Post {n} (Cat.No.{n}/2025)</a></li>'
        for n in cat_numbers
    )
    return (
        f"<html><body><h1>EXTRA ORDINARY GAZETTE DATE {day}/10/2025</h1>"
        f"{deadline}<ul>{links}</ul></body></html>"
    )


PAGES = {
    INDEX_URL: INDEX_HTML,
    gazette_url("25"): gazette_html("25", [401, 405]),
    gazette_url("20"): gazette_html("20", [390, 398], last_date=None),
    gazette_url("15"): gazette_html("15", [382]),
    gazette_url("10"): gazette_html("10", [370, 371, 372]),
    gazette_url("05"): gazette_html("05", [360]),
}


def make_session(pages=PAGES, statuses=None):
    """Mock session serving canned pages; unknown URLs give 404."""
    statuses = statuses or {}

    def fake_get(url, timeout):
        response = Mock()
        response.status_code = statuses.get(url, 200 if url in pages else 404)
        response.text = pages.get(url, "")
        return response

    session = Mock()
    session.get.side_effect = fake_get
    return session


def requested_urls(session):
    return [c.args[0] for c in session.get.call_args_list]


@pytest.fixture
def config():
    return FeedConfig(origin=ORIGIN, target_year=2025)


class TestRunPipeline:
    """Tests for the full pipeline."""

    def test_fetches_only_four_gazettes(self, config):
        """Test that a fifth listed gazette is never requested."""
        session = make_session()

        run_pipeline(40, config=config, session=session)

        urls = requested_urls(session)
        assert urls[0] == INDEX_URL
        assert sorted(urls[1:]) == sorted(gazette_url(d) for d in GAZETTE_DAYS[:4])
        assert gazette_url("05") not in urls

    def test_items_ranked(self, config):
        result = run_pipeline(40, config=config, session=make_session())

        assert [i.cat_no for i in result.items] == [
            "405/2025", "401/2025", "398/2025", "390/2025",
            "382/2025", "372/2025", "371/2025", "370/2025",
        ]
        assert result.warnings == []

    def test_invariants_hold(self, config):
        result = run_pipeline(40, config=config, session=make_session())

        for item in result.items:
            assert item.gazette_date.endswith("/2025")
            assert item.pdf_url.startswith("https://")
            if item.cat_no is not None:
                assert item.cat_no.endswith("/2025")

    def test_missing_last_date_only_affects_that_page(self, config):
        result = run_pipeline(40, config=config, session=make_session())
        by_cat = {i.cat_no: i for i in result.items}

        assert by_cat["398/2025"].last_date is None
        assert by_cat["398/2025"].title == "Post 398 (Cat.No.398/2025)"
        assert by_cat["405/2025"].last_date == "19-11-2025"

    def test_limit_truncates(self, config):
        result = run_pipeline(5, config=config, session=make_session())

        assert len(result.items) == 5

    def test_index_failure_is_fatal(self, config):
        session = make_session(statuses={INDEX_URL: 503})

        with pytest.raises(FetchError, match="HTTP 503"):
            run_pipeline(40, config=config, session=session)

        assert requested_urls(session) == [INDEX_URL]

    def test_failed_pages_reported_in_discovery_order(self, config):
        """Test that warnings follow index order and the surviving pages still rank."""
        session = make_session(statuses={gazette_url("10"): 404, gazette_url("25"): 500})

        result = run_pipeline(40, config=config, session=session)

        assert result.warnings == [
            {"source": gazette_url("25"), "error": "HTTP 500"},
            {"source": gazette_url("10"), "error": "HTTP 404"},
        ]
        assert [i.cat_no for i in result.items] == ["398/2025", "390/2025", "382/2025"]

    def test_gazette_failure_is_isolated(self, config):
        """Test that one unreachable gazette page is skipped and reported."""
        session = make_session(statuses={gazette_url("20"): 500})

        result = run_pipeline(40, config=config, session=session)

        assert "398/2025" not in {i.cat_no for i in result.items}
        assert len(result.items) == 6
        assert result.warnings == [{"source": gazette_url("20"), "error": "HTTP 500"}]

    def test_no_gazettes_is_not_an_error(self, config):
        session = make_session(pages={INDEX_URL: "<html><body>Nothing yet</body></html>"})

        result = run_pipeline(40, config=config, session=session)

        assert result.items == []
        assert result.warnings == []

    def test_target_year_is_configurable(self):
        config = FeedConfig(origin=ORIGIN, target_year=2026)

        result = run_pipeline(40, config=config, session=make_session())

        assert result.items == []

    def test_repeat_runs_are_identical(self, config):
        first = build_envelope(run_pipeline(40, config=config, session=make_session()))
        second = build_envelope(run_pipeline(40, config=config, session=make_session()))

        assert json.dumps(first["items"]) == json.dumps(second["items"])

    def test_creates_and_closes_own_session(self, config):
        session = make_session()

        with patch("kpsc_feed.main.create_session", return_value=session) as factory:
            run_pipeline(40, config=config)

        factory.assert_called_once()
        session.close.assert_called_once()

    def test_leaves_caller_session_open(self, config):
        session = make_session()

        run_pipeline(40, config=config, session=session)

        session.close.assert_not_called()


class TestEnvelope:
    """Tests for response envelope construction."""

    def test_success_envelope(self):
        item = NotificationItem(
            title="Clerk (Cat.No.5/2025)",
            pdf_url="https://e.com/5.pdf",
            cat_no="5/2025",
            gazette_date="15/10/2025",
            last_date=None,
            source="https://e.com/g",
        )
        now = datetime(2025, 10, 16, 8, 30, 0, 123456, tzinfo=timezone.utc)

        envelope = build_envelope(FeedResult(items=[item]), now=now)

        assert envelope == {
            "updatedAt": "2025-10-16T08:30:00.123Z",
            "count": 1,
            "items": [item.to_dict()],
        }

    def test_warnings_only_when_present(self):
        envelope = build_envelope(FeedResult(
            items=[],
            warnings=[{"source": "https://e.com/g", "error": "HTTP 500"}],
        ))

        assert envelope["count"] == 0
        assert envelope["warnings"] == [{"source": "https://e.com/g", "error": "HTTP 500"}]
        assert "warnings" not in build_envelope(FeedResult(items=[]))

    def test_error_envelope(self):
        assert build_error_envelope(ValueError("boom")) == {"error": "boom"}

    def test_timestamp_format(self):
        stamp = utc_timestamp()

        assert stamp.endswith("Z")
        datetime.strptime(stamp, "%Y-%m-%dT%H:%M:%S.%fZ")


class TestMain:
    """Tests for the command-line entry point."""

    @patch("kpsc_feed.main.setup_logging")
    @patch("kpsc_feed.main.load_feed_config")
    @patch("kpsc_feed.main.run_pipeline")
    def test_writes_feed_file(self, mock_run, mock_config, mock_logging, tmp_path, monkeypatch):
        output = tmp_path / "feed.json"
        monkeypatch.setenv("FEED_OUTPUT", str(output))
        monkeypatch.setenv("FEED_LIMIT", "9999")
        mock_config.return_value = FeedConfig()
        mock_run.return_value = FeedResult(items=[])

        assert main() == EXIT_SUCCESS

        assert mock_run.call_args.args[0] == 100
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["count"] == 0
        assert data["items"] == []

    @patch("kpsc_feed.main.setup_logging")
    @patch("kpsc_feed.main.load_feed_config")
    @patch("kpsc_feed.main.run_pipeline")
    def test_failure_writes_error(self, mock_run, mock_config, mock_logging, tmp_path, monkeypatch):
        output = tmp_path / "feed.json"
        monkeypatch.setenv("FEED_OUTPUT", str(output))
        monkeypatch.delenv("FEED_LIMIT", raising=False)
        mock_config.return_value = FeedConfig()
        mock_run.side_effect = FetchError(INDEX_URL, "HTTP 503")

        assert main() == EXIT_FAILURE

        assert mock_run.call_args.args[0] == 40
        data = json.loads(output.read_text(encoding="utf-8"))
        assert "HTTP 503" in data["error"]

    @patch("kpsc_feed.main.setup_logging")
    @patch("kpsc_feed.main.load_feed_config")
    @patch("kpsc_feed.main.run_pipeline")
    def test_prints_to_stdout(self, mock_run, mock_config, mock_logging, monkeypatch, capsys):
        monkeypatch.delenv("FEED_OUTPUT", raising=False)
        mock_config.return_value = FeedConfig()
        mock_run.return_value = FeedResult(items=[])

        assert main() == EXIT_SUCCESS

        assert json.loads(capsys.readouterr().out)["count"] == 0
