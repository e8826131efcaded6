# tests/test_hooks.py
import pytest

from jobcrawl.crawler import (
    ConfigurationError,
    EnrichmentHookError,
    load_document,
    load_enrichment_hook,
    run_enrichment_hook,
)

DOC = load_document('<html><body><span class="badge">Urgent</span></body></html>')


def badge_hook(document):
    return {"badge": document.select_one(".badge").get_text()}


# ----------------------------------------------------------------------
# loading
# ----------------------------------------------------------------------
def test_callable_is_returned_as_is():
    assert load_enrichment_hook(badge_hook) is badge_hook


def test_empty_target_means_no_hook():
    assert load_enrichment_hook(None) is None
    assert load_enrichment_hook("  ") is None


@pytest.mark.parametrize("target", ["os.path:basename", "os.path.basename"])
def test_import_path_is_resolved(target):
    import os.path

    assert load_enrichment_hook(target) is os.path.basename


@pytest.mark.parametrize(
    "target",
    [
        "no_such_module_for_hooks:fn",
        "os.path:no_such_function",
        "math:pi",
        "nodots",
    ],
)
def test_bad_import_paths_raise_configuration_error(target):
    with pytest.raises(ConfigurationError):
        load_enrichment_hook(target)


# ----------------------------------------------------------------------
# running
# ----------------------------------------------------------------------
def test_hook_output_is_returned_as_dict():
    assert run_enrichment_hook(badge_hook, DOC) == {"badge": "Urgent"}


def test_none_output_means_no_extra_fields():
    assert run_enrichment_hook(lambda document: None, DOC) == {}


def test_hook_exception_is_wrapped():
    def broken(document):
        raise KeyError("salary")

    with pytest.raises(EnrichmentHookError, match="KeyError"):
        run_enrichment_hook(broken, DOC)


def test_non_mapping_output_is_rejected():
    with pytest.raises(EnrichmentHookError):
        run_enrichment_hook(lambda document: ["not", "a", "mapping"], DOC)
