import json

import pytest

from feed_discover import runner
from feed_discover.catalog import CatalogError
from feed_discover.feeds import FeedFetchError
from feed_discover.filtering import SortKey
from feed_discover.models import PreviewArticle
from feed_discover.runner import RunConfig, run_browse, run_facets, run_preview


CATALOG = [
    {
        "id": "python-weekly",
        "title": "Python Weekly",
        "url": "https://python-weekly.example.com/rss",
        "domain": ["Technology"],
        "subdomain": ["Software Engineering"],
        "area": ["Programming Languages"],
        "topic": ["Python"],
        "tags": ["python", "weekly"],
        "type": "Newsletter",
        "createdAt": "2024-03-01T00:00:00Z",
        "summary": "Curated <Python> links.",
        "rating": 4,
    },
    {
        "id": "security-now",
        "title": "Security Now",
        "url": "https://security-now.example.com/feed",
        "domain": ["Technology"],
        "subdomain": ["Security"],
        "area": ["Cybercrime"],
        "topic": ["Investigations"],
        "tags": ["security"],
        "type": "Podcast",
        "rating": 4.5,
    },
    {
        "id": "optics-letters",
        "title": "Optics Letters",
        "url": "https://optics.example.com/atom",
        "domain": ["Science"],
        "subdomain": ["Physics"],
        "area": ["Optics"],
        "topic": ["Lasers"],
        "tags": ["research", "weekly"],
        "type": "Journal",
    },
]


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(CATALOG), encoding="utf-8")
    return str(path)


@pytest.fixture
def db_config(tmp_path, catalog_file):
    def factory(**overrides):
        values = {
            "catalog_file": catalog_file,
            "database_enabled": True,
            "database_connection_string": f"sqlite:///{tmp_path / 'state.db'}",
        }
        values.update(overrides)
        return RunConfig(**values)

    return factory


def test_run_browse_json_payload(catalog_file):
    config = RunConfig(
        catalog_file=catalog_file,
        tags=["weekly"],
        sort=SortKey.TITLE_DESC,
        output_format="json",
    )

    result = run_browse(config)

    assert result.payload["total"] == 2
    assert result.payload["totalPages"] == 1
    assert result.payload["sort"] == "title-desc"
    assert [feed["id"] for feed in result.payload["feeds"]] == [
        "python-weekly",
        "optics-letters",
    ]
    assert result.payload["filters"]["selectedTags"] == ["weekly"]
    assert json.loads(result.output_text) == result.payload


def test_run_browse_paths_and_types(catalog_file):
    config = RunConfig(
        catalog_file=catalog_file,
        paths=["Technology>>Cybercrime"],
        types=["Podcast", "Journal"],
    )

    result = run_browse(config)

    assert [feed["id"] for feed in result.payload["feeds"]] == ["security-now"]
    assert result.payload["filters"]["selectedPaths"] == [
        {"domain": "Technology", "area": "Cybercrime"}
    ]
    assert "Security Now [Podcast]" in result.output_text
    assert "category: Technology > Cybercrime" in result.output_text


def test_run_browse_pages(catalog_file):
    config = RunConfig(catalog_file=catalog_file, page=2, page_size=2)

    result = run_browse(config)

    assert result.payload["page"] == 2
    assert result.payload["totalPages"] == 2
    assert [feed["id"] for feed in result.payload["feeds"]] == ["security-now"]


def test_run_browse_page_past_end_is_empty(catalog_file):
    result = run_browse(RunConfig(catalog_file=catalog_file, page=9))

    assert result.payload["total"] == 3
    assert result.payload["feeds"] == []


def test_run_browse_html_escapes(catalog_file):
    result = run_browse(
        RunConfig(catalog_file=catalog_file, query="python", output_format="html")
    )

    assert "<!DOCTYPE html>" in result.output_text
    assert "Curated &lt;Python&gt; links." in result.output_text


def test_run_browse_rejects_unknown_format(catalog_file):
    with pytest.raises(ValueError):
        run_browse(RunConfig(catalog_file=catalog_file, output_format="pdf"))


def test_run_browse_rejects_empty_path(catalog_file):
    with pytest.raises(ValueError, match="Empty category path"):
        run_browse(RunConfig(catalog_file=catalog_file, paths=[">>"]))


def test_run_browse_rejects_unknown_type(catalog_file):
    with pytest.raises(ValueError):
        run_browse(RunConfig(catalog_file=catalog_file, types=["Carrier Pigeon"]))


def test_run_browse_missing_catalog(tmp_path):
    with pytest.raises(CatalogError):
        run_browse(RunConfig(catalog_file=str(tmp_path / "missing.json")))


def test_run_browse_persists_and_restores_filters(db_config):
    run_browse(db_config(tags=["weekly"], query="o"))

    restored = run_browse(db_config(types=["Journal"], output_format="json"))

    assert restored.payload["filters"] == {
        "query": "o",
        "selectedTypes": ["Journal"],
        "selectedPaths": [],
        "selectedTags": ["weekly"],
    }
    assert [feed["id"] for feed in restored.payload["feeds"]] == ["optics-letters"]


def test_run_browse_clear_and_no_save(db_config):
    run_browse(db_config(tags=["security"]))

    cleared = run_browse(db_config(clear=True, save_state=False, output_format="json"))
    assert cleared.payload["total"] == 3

    restored = run_browse(db_config(output_format="json"))
    assert restored.payload["filters"]["selectedTags"] == ["security"]


def test_repeated_selection_is_not_toggled_off(db_config):
    run_browse(db_config(tags=["security"]))

    result = run_browse(db_config(tags=["security"], output_format="json"))

    assert result.payload["filters"]["selectedTags"] == ["security"]


def test_run_facets_counts_whole_catalog(catalog_file):
    result = run_facets(RunConfig(catalog_file=catalog_file, output_format="json"))

    assert result.payload["type"] == {"Journal": 1, "Newsletter": 1, "Podcast": 1}
    assert result.payload["tag"]["weekly"] == 2
    assert result.payload["domain"] == {"Science": 1, "Technology": 2}
    assert result.payload["topic"]["Lasers"] == 1


def test_run_facets_text(catalog_file):
    result = run_facets(RunConfig(catalog_file=catalog_file))

    assert "Type:" in result.output_text
    assert "  weekly (2)" in result.output_text
    assert "  Technology (2)" in result.output_text


def test_run_preview_resolves_ids_and_urls(monkeypatch, catalog_file):
    seen = []

    def fake_preview(url, retries, fetcher):
        seen.append((url, retries))
        return [
            PreviewArticle(
                title=f"Latest from {url}",
                link=url + "/1",
                description="Body",
                pub_date="today",
            )
        ]

    monkeypatch.setattr(runner, "preview_feed", fake_preview)
    config = RunConfig(
        catalog_file=catalog_file,
        preview_targets=["python-weekly", "https://elsewhere.example.org/feed"],
        preview_retries=2,
        output_format="json",
    )

    result = run_preview(config)

    assert result.failures == 0
    assert sorted(seen) == [
        ("https://elsewhere.example.org/feed", 2),
        ("https://python-weekly.example.com/rss", 2),
    ]
    first, second = result.payload
    assert first["feed"] == "python-weekly"
    assert first["url"] == "https://python-weekly.example.com/rss"
    assert first["articles"][0]["title"] == "Latest from https://python-weekly.example.com/rss"
    assert second["feed"] is None
    assert second["error"] is None


def test_run_preview_reports_failures(monkeypatch, catalog_file):
    def fake_preview(url, retries, fetcher):
        if "security" in url:
            raise FeedFetchError(url, "503 Server Error")
        return []

    monkeypatch.setattr(runner, "preview_feed", fake_preview)
    config = RunConfig(
        catalog_file=catalog_file,
        preview_targets=["security-now", "optics-letters"],
    )

    result = run_preview(config)

    assert result.failures == 1
    assert result.payload[0]["error"] == "503 Server Error"
    assert "Failed to load feed preview: 503 Server Error" in result.output_text
    assert "Optics Letters (Journal)" in result.output_text
    assert "No articles found in this feed" in result.output_text


def test_run_preview_passes_fetch_settings(monkeypatch, catalog_file):
    captured = {}

    def fake_fetch(url, timeout, user_agent):
        captured.update(url=url, timeout=timeout, user_agent=user_agent)
        return "<rss><channel><item><title>Hi</title></item></channel></rss>"

    monkeypatch.setattr(runner, "fetch_feed_document", fake_fetch)
    config = RunConfig(
        catalog_file=catalog_file,
        preview_targets=["optics-letters"],
        preview_timeout=2.5,
        user_agent="agent/1",
    )

    result = run_preview(config)

    assert captured == {
        "url": "https://optics.example.com/atom",
        "timeout": 2.5,
        "user_agent": "agent/1",
    }
    assert result.payload[0]["articles"][0]["title"] == "Hi"


def test_run_preview_unknown_id(catalog_file):
    with pytest.raises(ValueError, match="Unknown feed id"):
        run_preview(RunConfig(catalog_file=catalog_file, preview_targets=["nope"]))


def test_run_preview_requires_targets(catalog_file):
    with pytest.raises(ValueError):
        run_preview(RunConfig(catalog_file=catalog_file))
