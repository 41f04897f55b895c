"""
Tests for the best case store, the guide store and the metadata analyzer.
"""

import json

import pytest

from codemode.capabilities import build_default_facades
from codemode.capabilities.bestcase import BestCaseStore
from codemode.capabilities.guides import GuideStore, parse_guide
from codemode.capabilities.metadata import HeuristicMetadataAnalyzer, infer_category
from codemode.core.exceptions import CapabilityError, CapabilityNotFoundError


class TestBestCaseStore:
    @pytest.fixture
    def store(self, tmp_path):
        return BestCaseStore(tmp_path / "bestcases")

    def test_save_and_load_by_id(self, store):
        saved = store.save_best_case(
            {
                "projectName": "shop",
                "category": "page",
                "description": "Checkout page",
                "files": [{"path": "pages/checkout.vue", "content": "<template/>"}],
                "tags": ["nuxt"],
                "totalScore": 91,
            }
        )

        assert saved["success"] is True
        assert saved["id"].startswith("shop-page-")
        case = store.load_best_case({"id": saved["id"]})["bestCase"]
        assert case["description"] == "Checkout page"
        assert case["metadata"]["tags"] == ["nuxt"]
        assert case["totalScore"] == 91

    def test_ids_are_filename_safe(self, store):
        saved = store.save_best_case({"projectName": "my shop/v2", "category": "api client"})
        assert saved["id"].startswith("my-shop-v2-api-client-")

    def test_load_missing_returns_null(self, store):
        assert store.load_best_case({"id": "nope"}) == {"bestCase": None}
        assert store.load_best_case() == {"bestCase": None}

    def test_load_rejects_path_traversal(self, store):
        with pytest.raises(CapabilityError, match="Invalid best case id"):
            store.load_best_case({"id": "../secrets"})

    def test_save_requires_project_and_category(self, store):
        with pytest.raises(CapabilityError, match="'projectName' and 'category'"):
            store.save_best_case({"projectName": "shop"})

    def test_list_and_search(self, store):
        store.save_best_case({"projectName": "alpha", "category": "page", "totalScore": 70})
        store.save_best_case(
            {"projectName": "beta", "category": "api", "description": "gRPC client", "totalScore": 95}
        )

        listed = store.list_best_cases()
        assert listed["total"] == 2
        assert [item["projectName"] for item in listed["bestcases"]] == ["beta", "alpha"]

        found = store.search_best_cases({"keywords": ["GRPC"]})
        assert found["total"] == 1
        assert found["summary"][0]["projectName"] == "beta"

        assert store.search_best_cases({"minTotalScore": 80})["total"] == 1
        assert store.search_best_cases({"category": "page"})["ids"] == [listed["bestcases"][1]["id"]]

    def test_unreadable_documents_are_skipped(self, store):
        store.directory.mkdir(parents=True)
        (store.directory / "broken.json").write_text("{not json")
        (store.directory / "ok.json").write_text(json.dumps({"id": "ok", "projectName": "p"}))

        assert [item["id"] for item in store.list_best_cases()["bestcases"]] == ["ok"]


GUIDES = {
    "intro.md": (
        "---\nid: intro\nsummary: Getting started\ntags: [basics, setup]\npriority: 80\n---\n"
        "# Intro\nWelcome to the project."
    ),
    "api.md": (
        "---\nid: api\nsummary: Calling the backend\ntags: api, grpc\npriority: 60\n"
        "scope: project\nmandatory: true\n---\nUse the client."
    ),
    "legacy-api.md": "---\nid: legacy-api\nsummary: Old REST calls\nexcludes: [api]\n---\nUse fetch.",
    "nested/notes.md": "# Notes heading\nplain body",
}


class TestGuideStore:
    @pytest.fixture
    def store(self, tmp_path):
        for relative, text in GUIDES.items():
            path = tmp_path / "guides" / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text)
        return GuideStore(tmp_path / "guides")

    def test_parse_guide_without_front_matter(self):
        guide = parse_guide("# Title here\nbody", "docs/page.md")

        assert guide.id == "page"
        assert guide.summary == "Title here"
        assert guide.priority == 50
        assert guide.scope == "global"

    def test_parse_guide_with_invalid_front_matter(self):
        with pytest.raises(CapabilityError, match="Invalid front matter"):
            parse_guide("---\ntags: [unclosed\n---\nbody", "bad.md")

    def test_search_by_keyword(self, store):
        guides = store.search_guides({"keywords": ["api"]})["guides"]

        assert [g["id"] for g in guides] == ["api"]
        assert guides[0]["score"] == 21.0

    def test_search_without_keywords_ranks_by_priority(self, store):
        ids = [g["id"] for g in store.search_guides()["guides"]]
        assert ids[:2] == ["intro", "api"]
        assert set(ids) == {"intro", "api", "legacy-api", "notes"}

    def test_load_guide(self, store):
        guide = store.load_guide({"id": "notes"})["guide"]

        assert guide["filePath"] == "nested/notes.md"
        assert guide["summary"] == "Notes heading"
        assert guide["content"] == "# Notes heading\nplain body"

    def test_load_missing_guide(self, store):
        with pytest.raises(CapabilityNotFoundError, match="NotFound: guide ghost"):
            store.load_guide({"id": "ghost"})

    def test_load_guide_requires_object(self, store):
        with pytest.raises(CapabilityError, match="requires an 'id'"):
            store.load_guide("intro")

    def test_combine_includes_mandatory_and_honours_excludes(self, store):
        result = store.combine_guides({"ids": ["legacy-api", "intro"]})

        assert [g["id"] for g in result["usedGuides"]] == ["api", "intro"]
        assert result["combined"].startswith("# Calling the backend\n\nUse the client.")
        assert result["mandatoryReminders"] == ["api: Calling the backend"]

    def test_missing_directory_is_empty(self, tmp_path):
        assert GuideStore(tmp_path / "none").search_guides() == {"guides": []}


class TestMetadataAnalyzer:
    analyzer = HeuristicMetadataAnalyzer()

    @pytest.mark.parametrize(
        "path, category",
        [
            ("pages/index.vue", "page"),
            ("src/components/Card.ts", "component"),
            ("composables/useCart.ts", "composable"),
            ("src/services/orders.ts", "api"),
            ("src/utils/format.ts", "utility"),
            ("README.md", "other"),
        ],
    )
    def test_infer_category(self, path, category):
        assert infer_category(path) == category

    def test_quick_classify_component(self):
        result = self.analyzer.quick_classify(
            {"filePath": "components/Button.vue", "content": "<template><MyButton /></template>"}
        )

        assert result["category"] == "component"
        assert result["hasAPI"] is False
        assert result["hasComponents"] is True
        assert result["worthDeepAnalysis"] is True
        assert result["estimatedComplexity"] == "low"

    def test_quick_classify_accepts_positional_arguments(self):
        result = self.analyzer.quick_classify("src/api/client.ts", "await fetch('/x')")
        assert result["category"] == "api"
        assert result["hasAPI"] is True

    def test_analyze_file(self):
        content = (
            "import { ref } from 'vue'\n"
            "export function useCart() {\n"
            "  try { useFetch('/cart') } catch (e) {}\n"
            "}"
        )
        result = self.analyzer.analyze_file({"filePath": "composables/useCart.ts", "content": content})

        assert result["category"] == "composable"
        assert result["frameworks"] == ["vue", "nuxt3"]
        assert result["apiType"] == "rest"
        assert result["composablesUsed"] == ["useCart", "useFetch"]
        assert result["errorHandling"] == "basic"
        assert result["linesOfCode"] == 4

    def test_content_is_required(self):
        with pytest.raises(CapabilityError, match="'content' to be a string"):
            self.analyzer.analyze_file({"filePath": "a.ts"})

    def test_health_check(self):
        assert self.analyzer.health_check()["ok"] is True


def test_default_facades_cover_every_capability(project_config):
    names = [facade.name for facade in build_default_facades(project_config)]
    assert names == ["filesystem", "bestcase", "guides", "metadata"]
