import asyncio

from sso_crawler.core.models import SessionState  # type: ignore[import]
from tests.helpers.crawler_imports import cli
from tests.helpers.fakes import START_URL, FakeRenderer, make_config, make_crawler, page_html


def test_parse_arguments_collects_allowlist_entries():
    args = cli.parse_arguments(
        [
            "-u",
            "https://app.example.com/",
            "--max-depth",
            "3",
            "--allow",
            "docs.example.com",
            "--allow",
            "/^api\\./",
        ]
    )

    assert args.url == "https://app.example.com/"
    assert args.max_depth == 3
    assert args.max_pages is None
    assert args.allow == ["docs.example.com", "/^api\\./"]
    assert args.headless is None
    assert args.auto_start is False


def test_handle_command_drives_the_crawler(tmp_path, capsys):
    renderer = FakeRenderer({START_URL: page_html("/a"), "https://app.example.com/a": page_html()})
    crawler = make_crawler(make_config(tmp_path), renderer)

    async def scenario():
        assert await cli.handle_command(crawler, "add docs.example.com") is True
        assert await cli.handle_command(crawler, "allowlist") is True
        assert await cli.handle_command(crawler, "start") is True
        assert await cli.handle_command(crawler, "pause") is True
        assert crawler.state is SessionState.PAUSED
        assert await cli.handle_command(crawler, "resume") is True
        assert await cli.handle_command(crawler, "quit") is False

    asyncio.run(scenario())
    output = capsys.readouterr().out

    assert " - docs.example.com" in output
    assert "[+] Crawl started." in output
    assert "State: Paused" in output
    assert crawler.state is SessionState.IDLE


def test_unknown_command_prints_help(tmp_path, capsys):
    crawler = make_crawler(make_config(tmp_path), FakeRenderer({}))

    keep_going = asyncio.run(cli.handle_command(crawler, "jump"))

    assert keep_going is True
    assert "Commands:" in capsys.readouterr().out


def test_status_command_describes_progress(tmp_path, capsys):
    crawler = make_crawler(make_config(tmp_path), FakeRenderer({}))

    asyncio.run(cli.handle_command(crawler, "status"))

    output = capsys.readouterr().out
    assert "State: Idle" in output
    assert "Visited: 0 / 10" in output
