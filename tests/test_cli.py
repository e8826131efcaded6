# tests/test_cli.py
import json

import pytest

from jobcrawl import crawl
from jobcrawl.crawler import CrawlConfig, Storage


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(crawl, "setup_logging", lambda output_dir, verbose: None)


def test_cli_flags_override_config_file(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"country": "UK", "position": "nurse", "maxItems": 100}),
        encoding="utf-8",
    )

    args = crawl.parse_args(
        [
            "--config",
            str(config_path),
            "--max_items",
            "20",
            "--start_url",
            "https://uk.indeed.com/jobs?q=chef",
            "--proxy_url",
            "http://proxy-1:8000",
        ]
    )
    config = crawl.build_config(args)

    assert config.country == "UK"
    assert config.position == "nurse"
    assert config.max_items == 20
    assert [entry.url for entry in config.start_urls] == ["https://uk.indeed.com/jobs?q=chef"]
    assert config.proxy_urls == ["http://proxy-1:8000"]


def test_invalid_configuration_exits_with_code_2(tmp_path):
    code = crawl.main(["--output_dir", str(tmp_path), "--max_items", "0"])

    assert code == 2


def test_bad_hook_path_exits_with_code_2(tmp_path):
    code = crawl.main(
        ["--output_dir", str(tmp_path), "--extend_output_function", "no_such_module_for_hooks:fn"]
    )

    assert code == 2


def test_resuming_a_different_search_exits_with_code_2(tmp_path):
    Storage(tmp_path).save_crawl_config(CrawlConfig.from_dict({"position": "nurse"}))

    code = crawl.main(["--output_dir", str(tmp_path), "--position", "chef"])

    assert code == 2
