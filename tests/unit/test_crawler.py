import asyncio

from sso_crawler.core.models import DeliveryOutcome, SessionState  # type: ignore[import]
from tests.helpers.fakes import (
    START_URL,
    FakeRenderer,
    make_config,
    make_crawler,
    page_html,
)

A = "https://app.example.com/a"
B = "https://app.example.com/b"
C = "https://app.example.com/c"
D = "https://app.example.com/d"
FOREIGN = "https://other.example.org/x"


def _run(crawler):
    async def scenario():
        started = await crawler.start()
        await crawler.wait()
        return started

    return asyncio.run(scenario())


def test_end_to_end_visits_start_and_allowed_links(tmp_path):
    renderer = FakeRenderer(
        {
            START_URL: page_html("/a", "/b", "c", FOREIGN),
            A: page_html("/d", "/"),
            B: page_html("/a"),
            C: page_html(FOREIGN),
            D: page_html(),
        }
    )
    crawler = make_crawler(make_config(tmp_path, max_depth=1, max_pages=10), renderer)

    assert _run(crawler) is True

    session = crawler.session
    assert session.frontier.visited == {START_URL, A, B, C}
    assert renderer.opened == [START_URL, A, B, C]
    assert FOREIGN not in session.frontier.visited
    assert {record.url: record.depth for record in crawler.report.deliveries} == {
        START_URL: 0,
        A: 1,
        B: 1,
        C: 1,
    }
    assert crawler.state is SessionState.IDLE
    assert len(session.frontier) == 0


def test_captures_are_persisted_with_sequential_stems(tmp_path):
    renderer = FakeRenderer({START_URL: page_html("/a"), A: page_html()})
    config = make_config(tmp_path)
    crawler = make_crawler(config, renderer)

    _run(crawler)

    assert sorted(path.name for path in config.output_dir.iterdir()) == [
        "page-0001.html",
        "page-0001.png",
        "page-0002.html",
        "page-0002.png",
    ]
    assert all(record.outcome is DeliveryOutcome.PERSISTED for record in crawler.report.deliveries)
    assert all(page.scrolled and page.closed for page in renderer.contexts)


def test_page_budget_bounds_visits(tmp_path):
    links = [f"/p{i}" for i in range(20)]
    pages = {START_URL: page_html(*links)}
    pages.update({f"https://app.example.com/p{i}": page_html(*links) for i in range(20)})
    renderer = FakeRenderer(pages)
    crawler = make_crawler(make_config(tmp_path, max_depth=3, max_pages=5), renderer)

    _run(crawler)

    assert crawler.session.frontier.visited_count == 5
    assert len(renderer.opened) == 5


def test_depth_limit_is_never_exceeded(tmp_path):
    renderer = FakeRenderer(
        {
            START_URL: page_html("/a"),
            A: page_html("/b"),
            B: page_html("/c"),
            C: page_html("/d"),
        }
    )
    crawler = make_crawler(make_config(tmp_path, max_depth=2), renderer)

    _run(crawler)

    assert renderer.opened == [START_URL, A, B]
    assert max(record.depth for record in crawler.report.deliveries) == 2


def test_depth_zero_captures_only_the_start_page(tmp_path):
    renderer = FakeRenderer({START_URL: page_html("/a"), A: page_html()})
    crawler = make_crawler(make_config(tmp_path, max_depth=0), renderer)

    _run(crawler)

    assert renderer.opened == [START_URL]


def test_failed_pages_do_not_stop_the_crawl(tmp_path):
    renderer = FakeRenderer(
        {START_URL: page_html("/a", "/b", "/c"), A: page_html(), B: page_html(), C: page_html()},
        failing={A},
        broken_screenshots={B},
    )
    crawler = make_crawler(make_config(tmp_path), renderer)

    _run(crawler)

    assert renderer.opened == [START_URL, A, B, C]
    assert [record.url for record in crawler.report.deliveries] == [START_URL, C]
    assert {A, B} <= crawler.session.frontier.visited


def test_start_failure_returns_to_idle(tmp_path):
    renderer = FakeRenderer({}, fail_start=True)
    crawler = make_crawler(make_config(tmp_path), renderer)

    assert _run(crawler) is False
    assert crawler.state is SessionState.IDLE
    assert crawler.session is None
    assert crawler.status().visited == 0


def test_start_while_running_is_a_no_op(tmp_path):
    renderer = FakeRenderer({START_URL: page_html("/a"), A: page_html()}, gate=asyncio.Event())
    crawler = make_crawler(make_config(tmp_path), renderer)

    async def scenario():
        assert await crawler.start() is True
        session = crawler.session
        before = crawler.status()

        assert await crawler.start() is False

        after = crawler.status()
        assert crawler.session is session
        assert crawler.state is SessionState.RUNNING
        assert (after.visited, after.queued) == (before.visited, before.queued)
        crawler.stop()
        await crawler.wait()

    asyncio.run(scenario())


def test_stop_clears_frontier_and_returns_to_idle(tmp_path):
    renderer = FakeRenderer({START_URL: page_html()}, gate=asyncio.Event())
    crawler = make_crawler(make_config(tmp_path), renderer)

    async def scenario():
        await crawler.start()
        crawler.session.frontier.enqueue(A, 1)
        assert len(crawler.session.frontier) == 2

        crawler.stop()

        assert crawler.state is SessionState.IDLE
        assert len(crawler.session.frontier) == 0
        await asyncio.wait_for(crawler.wait(), timeout=1)

    asyncio.run(scenario())
    assert renderer.opened == []


def test_stop_cancels_an_in_flight_render(tmp_path):
    renderer = FakeRenderer({START_URL: page_html("/a"), A: page_html()}, gate=asyncio.Event())
    crawler = make_crawler(make_config(tmp_path), renderer)

    async def scenario():
        await crawler.start()
        for _ in range(5):
            await asyncio.sleep(0)
        assert renderer.opened == [START_URL]

        crawler.stop()
        await asyncio.wait_for(crawler.wait(), timeout=1)

    asyncio.run(scenario())
    assert crawler.state is SessionState.IDLE
    assert crawler.report.deliveries == []


def test_pause_then_resume_keeps_frontier_and_visited(tmp_path):
    renderer = FakeRenderer({START_URL: page_html()}, gate=asyncio.Event())
    crawler = make_crawler(make_config(tmp_path), renderer)

    async def scenario():
        await crawler.start()
        frontier = crawler.session.frontier
        frontier.enqueue(A, 1)
        queued = list(frontier)
        visited = set(frontier.visited)

        assert crawler.pause() is SessionState.PAUSED
        assert crawler.pause() is SessionState.RUNNING

        assert list(frontier) == queued
        assert frontier.visited == visited
        crawler.stop()
        await crawler.wait()

    asyncio.run(scenario())


def test_paused_crawl_stops_at_iteration_boundary_and_resumes(tmp_path):
    renderer = FakeRenderer({START_URL: page_html("/a", "/b"), A: page_html(), B: page_html()})
    crawler = make_crawler(make_config(tmp_path), renderer)

    async def scenario():
        await crawler.start()
        crawler.pause()
        await crawler.wait()
        assert crawler.state is SessionState.PAUSED
        assert renderer.opened == []

        assert crawler.resume() is SessionState.RUNNING
        await crawler.wait()

    asyncio.run(scenario())
    assert renderer.opened == [START_URL, A, B]
    assert crawler.state is SessionState.IDLE


def test_control_misuse_is_a_logged_no_op(tmp_path, caplog):
    crawler = make_crawler(make_config(tmp_path), FakeRenderer({}))

    with caplog.at_level("INFO"):
        assert crawler.pause() is SessionState.IDLE
        assert crawler.resume() is SessionState.IDLE
        crawler.stop()

    assert crawler.state is SessionState.IDLE
    assert "No crawl to pause" in caplog.text
    assert "No crawl to stop" in caplog.text


def test_allowlist_rules_apply_to_next_discovery_and_survive_restart(tmp_path):
    renderer = FakeRenderer({START_URL: page_html("/a"), A: page_html()})
    crawler = make_crawler(make_config(tmp_path, allowlist=("intranet.example.com",)), renderer)

    crawler.add_allowlist_entry(r"/^docs\./")
    _run(crawler)

    assert crawler.allowlist == ("intranet.example.com", r"/^docs\./", "app.example.com")
    assert crawler.remove_allowlist_entry(r"/^docs\./") is True
    assert crawler.remove_allowlist_entry("unknown") is False

    _run(crawler)
    assert crawler.allowlist == ("intranet.example.com", "app.example.com")
    assert crawler.session.frontier.visited == {START_URL, A}


def test_status_reports_progress(tmp_path):
    renderer = FakeRenderer({START_URL: page_html("/a"), A: page_html()})
    crawler = make_crawler(make_config(tmp_path), renderer)

    _run(crawler)
    status = crawler.status()

    assert status.state is SessionState.IDLE
    assert status.visited == 2
    assert status.queued == 0
    assert status.max_pages == 10
    assert status.current_url is None


def test_equivalent_spellings_of_a_url_are_visited_once(tmp_path):
    renderer = FakeRenderer(
        {
            START_URL: page_html(
                "https://app.example.com",
                "/a",
                "https://APP.example.com/a",
                "https://app.example.com:443/a#top",
            ),
            A: page_html("HTTPS://app.example.com:443"),
        }
    )
    crawler = make_crawler(make_config(tmp_path, max_depth=2), renderer)

    _run(crawler)

    assert renderer.opened == [START_URL, A]
    assert [record.url for record in crawler.report.deliveries] == [START_URL, A]


def test_render_timeout_skips_the_page_and_continues(tmp_path, caplog):
    renderer = FakeRenderer(
        {START_URL: page_html("/a", "/b"), A: page_html(), B: page_html()},
        slow={A},
    )
    crawler = make_crawler(make_config(tmp_path, render_timeout=0.05), renderer)

    with caplog.at_level("INFO"):
        _run(crawler)

    assert renderer.opened == [START_URL, A, B]
    assert [record.url for record in crawler.report.deliveries] == [START_URL, B]
    assert f"Render timeout for {A}" in caplog.text
    assert "cancelled by stop" not in caplog.text
    assert A in crawler.session.frontier.visited
    assert crawler.state is SessionState.IDLE


def test_redirect_target_is_not_captured_again(tmp_path):
    old = "https://app.example.com/old"
    new = "https://app.example.com/new"
    renderer = FakeRenderer(
        {START_URL: page_html("/old", "/new"), old: page_html("/new"), new: page_html()},
        redirects={old: new},
    )
    crawler = make_crawler(make_config(tmp_path, max_depth=2), renderer)

    _run(crawler)

    assert renderer.opened == [START_URL, old]
    assert [record.url for record in crawler.report.deliveries] == [START_URL, old]
    assert new not in crawler.session.frontier.visited
