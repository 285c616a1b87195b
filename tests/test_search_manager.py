"""Tests for namespace routing, fan-out and reranking in the search executor."""

import httpx
import pytest

from hybrid_retrieval.encoders.embedding_provider import HTTPEmbeddingProvider
from hybrid_retrieval.errors import VectorIndexQueryError
from hybrid_retrieval.hybrid.namespaces import namespace_for, qa_namespace, website_namespace
from hybrid_retrieval.hybrid.search_manager import SearchExecutor, perform_search
from hybrid_retrieval.types import Classification, InteractionType, SparseVector
from tests.conftest import FakeEmbeddingProvider, FakeHybridIndex, make_candidate

DENSE = [0.1, 0.2, 0.3]
SPARSE = SparseVector([5, 9], [0.5, 0.5])


def sales_classification(**overrides):
    data = {"type": "product", "category": "sales", "interaction_type": "sales"}
    data.update(overrides)
    return Classification.from_dict(data)


def test_namespace_naming():
    """Test the three namespace conventions."""
    assert namespace_for("w1", InteractionType.SALES) == "w1-sales"
    assert namespace_for("w1", None) == "w1-discounts"
    assert namespace_for("w1", "support") == "w1-support"
    assert qa_namespace("w1") == "w1-qa"
    assert qa_namespace("w1", InteractionType.SUPPORT) == "w1-support-qa"
    assert website_namespace("w1") == "w1"


@pytest.mark.asyncio
async def test_standard_mode_queries_single_namespace(config, metrics):
    """Test standard mode routes to the interaction namespace without a filter."""
    index = FakeHybridIndex({"w1-sales": [make_candidate("a", type="product", handle="a")]})
    executor = SearchExecutor(index, config=config, metrics=metrics)

    results = await executor.perform_search("w1", "boots", DENSE, SPARSE, sales_classification())

    assert [r.id for r in results] == ["a"]
    assert index.queries == [{
        "namespace": "w1-sales",
        "dense": DENSE,
        "top_k": 10,
        "metadata_filter": None,
    }]
    assert metrics.registry.get_sample_value("hr_search_requests_total", {"mode": "standard"}) == 1.0


@pytest.mark.asyncio
async def test_standard_mode_defaults_to_discounts(config, metrics):
    """Test a classification without interaction type uses the discounts namespace."""
    index = FakeHybridIndex()
    executor = SearchExecutor(index, config=config, metrics=metrics)

    await executor.perform_search("w1", "boots", DENSE, SPARSE, Classification(type="product"))

    assert index.queries[0]["namespace"] == "w1-discounts"


@pytest.mark.asyncio
async def test_standard_mode_dedupes_by_handle(config, metrics):
    """Test single-namespace results collapse on handle."""
    index = FakeHybridIndex({"w1-sales": [
        make_candidate("a", type="product", handle="board"),
        make_candidate("b", type="product", handle="board"),
        make_candidate("c", type="product"),
    ]})
    executor = SearchExecutor(index, config=config, metrics=metrics)

    results = await executor.perform_search("w1", "boots", DENSE, SPARSE, sales_classification())

    assert sorted(r.id for r in results) == ["a", "c"]


@pytest.mark.asyncio
async def test_standard_mode_failure_propagates(config, metrics):
    """Test the single standard-mode query is not silently dropped."""
    index = FakeHybridIndex(failing_namespaces={"w1-sales"})
    executor = SearchExecutor(index, config=config, metrics=metrics)

    with pytest.raises(VectorIndexQueryError):
        await executor.perform_search("w1", "boots", DENSE, SPARSE, sales_classification())

    assert await executor.safe_search("w1", "boots", DENSE, SPARSE, sales_classification()) == []


@pytest.mark.asyncio
async def test_fallback_mode_tolerates_failing_namespace(config, metrics):
    """Test one failing namespace does not abort the others."""
    index = FakeHybridIndex(
        {
            "w1-sales": [make_candidate("s1", type="product"), make_candidate("page", type="page")],
            "w1-discounts": [make_candidate("d1", type="collection")],
        },
        failing_namespaces={"w1-support"},
    )
    executor = SearchExecutor(index, config=config, metrics=metrics)

    results = await executor.perform_search("w1", "boots", DENSE, SPARSE, None, use_all_namespaces=True)

    assert [r.id for r in results] == ["s1", "d1"]
    assert [q["namespace"] for q in index.queries] == ["w1-sales", "w1-support", "w1-discounts"]
    assert all(q["top_k"] == 7 for q in index.queries)
    assert all(q["metadata_filter"] == {"type": {"$in": ["collection", "product"]}} for q in index.queries)
    assert metrics.registry.get_sample_value(
        "hr_namespace_query_failures_total", {"interaction_type": "support"}
    ) == 1.0


@pytest.mark.asyncio
async def test_unspecified_interaction_uses_fallback(config, metrics):
    """Test the noneSpecified interaction type fans out across namespaces."""
    index = FakeHybridIndex({
        "w1-sales": [make_candidate("same", type="product")],
        "w1-support": [make_candidate("same", type="product")],
    })
    executor = SearchExecutor(index, config=config, metrics=metrics)

    results = await executor.perform_search(
        "w1", "boots", DENSE, SPARSE, sales_classification(interaction_type="noneSpecified")
    )

    assert len(index.queries) == 3
    assert [r.id for r in results] == ["same"]


@pytest.mark.asyncio
async def test_no_classification_returns_raw_candidates(config, metrics):
    """Test retrieval without classification keeps raw scores and order."""
    index = FakeHybridIndex({"w1-discounts": [
        make_candidate("low", score=0.1, type="product"),
        make_candidate("high", score=0.9, type="page"),
    ]})
    executor = SearchExecutor(index, config=config, metrics=metrics)

    results = await executor.perform_search("w1", "boots", DENSE, SPARSE, None)

    assert [(r.id, r.rerank_score, r.classification_match) for r in results] == [
        ("low", 0.1, "0/3"),
        ("high", 0.9, "0/3"),
    ]


@pytest.mark.asyncio
async def test_collection_query_adds_auxiliary_search(config, metrics):
    """Test collection queries re-embed a prefixed query and merge its matches first."""
    index = FakeHybridIndex({"w1-sales": [
        make_candidate("wax", score=0.45, type="product", title="Snowboard Wax", handle="wax"),
        make_candidate("boards", score=0.30, type="collection", category="sales", title="Snowboards", handle="boards"),
        make_candidate("faq", score=0.50, type="page", handle="faq"),
    ]})
    embedder = FakeEmbeddingProvider(dimension=3)
    executor = SearchExecutor(index, embedder=embedder, config=config, metrics=metrics)
    classification = sales_classification(type="collection")

    results = await executor.perform_search("w1", "snowboards", DENSE, SPARSE, classification)

    assert embedder.calls == ["collection snowboards"]
    aux, main = index.queries
    assert aux["metadata_filter"] == {"type": {"$in": ["collection", "product"]}}
    assert aux["top_k"] == 7
    assert main["metadata_filter"] is None
    assert results[0].id == "boards"
    assert sorted(r.id for r in results) == ["boards", "faq", "wax"]


@pytest.mark.asyncio
async def test_collection_query_without_embedder_skips_auxiliary(config, metrics):
    """Test the auxiliary query is skipped when no embedder is configured."""
    index = FakeHybridIndex({"w1-sales": [make_candidate("boards", type="collection")]})

    results = await perform_search(
        index, "w1", "snowboards", DENSE, SPARSE, sales_classification(type="collection"), config=config
    )

    assert len(index.queries) == 1
    assert [r.id for r in results] == ["boards"]


@pytest.mark.asyncio
async def test_collection_auxiliary_failure_is_isolated(config, metrics):
    """Test an embedding failure for the auxiliary query leaves the main search intact."""
    index = FakeHybridIndex({"w1-sales": [make_candidate("boards", type="collection")]})
    embedder = FakeEmbeddingProvider(failing_texts={"collection snowboards"})
    executor = SearchExecutor(index, embedder=embedder, config=config, metrics=metrics)

    results = await executor.perform_search(
        "w1", "snowboards", DENSE, SPARSE, sales_classification(type="collection")
    )

    assert [r.id for r in results] == ["boards"]


@pytest.mark.asyncio
async def test_qa_search_forces_classification_metadata(config, metrics):
    """Test Q&A matches take the query's classification before reranking."""
    index = FakeHybridIndex({"w1-sales-qa": [
        make_candidate("q1", question="Return policy?", answer="30 days", type="faq"),
        make_candidate("q2", question="Return policy?", answer="30 days"),
        make_candidate("q3", question="Shipping?", answer="Free"),
    ]})
    executor = SearchExecutor(index, config=config, metrics=metrics)

    results = await executor.perform_qa_search("w1", "return policy", DENSE, SPARSE, sales_classification())

    assert index.queries[0]["top_k"] == 20
    assert [r.id for r in results] == ["q1", "q3"]
    assert all(r.metadata.type == "product" for r in results)
    assert all(r.metadata.sub_category == "discounts" for r in results)
    assert all(r.classification_match == "3/3" for r in results)
    assert index.namespaces["w1-sales-qa"][0].metadata.type == "faq"


@pytest.mark.asyncio
async def test_qa_search_without_classification(config, metrics):
    """Test unclassified Q&A matches are labelled discounts and fan out."""
    index = FakeHybridIndex({"w1-support-qa": [make_candidate("q1", score=0.4, question="Hours?")]})
    executor = SearchExecutor(index, config=config, metrics=metrics)

    results = await executor.perform_qa_search("w1", "hours", DENSE, SPARSE, None, use_all_namespaces=True)

    assert [q["namespace"] for q in index.queries] == ["w1-sales-qa", "w1-support-qa", "w1-discounts-qa"]
    assert results[0].metadata.type == "discounts"
    assert results[0].metadata.category == "discounts"
    assert results[0].metadata.sub_category == "discounts"
    assert results[0].rerank_score == 0.4


@pytest.mark.asyncio
async def test_retrieve_runs_main_and_qa_searches(config, metrics):
    """Test retrieve builds vectors and returns both rankings."""
    index = FakeHybridIndex({
        "w1-sales": [make_candidate("board", type="product", title="Nova Board")],
        "w1-sales-qa": [make_candidate("qa", question="Is the Nova Board stiff?")],
    })
    embedder = FakeEmbeddingProvider(dimension=3)
    executor = SearchExecutor(index, embedder=embedder, config=config, metrics=metrics)

    result = await executor.retrieve(
        "w1", "nova board flex rating", sales_classification(),
        previous_question="which board?", previous_answer="Nova Board",
    )

    assert not result.redirect_to_collections
    assert [r.id for r in result.main] == ["board"]
    assert [r.id for r in result.qa] == ["qa"]
    assert "nova board flex rating which board? Nova Board" in embedder.calls


@pytest.mark.asyncio
async def test_retrieve_redirects_generic_questions(config, metrics):
    """Test questions with too few lexical terms skip the search."""
    index = FakeHybridIndex()
    executor = SearchExecutor(index, embedder=FakeEmbeddingProvider(), config=config, metrics=metrics)

    result = await executor.retrieve("w1", "hi", sales_classification())

    assert result.redirect_to_collections
    assert index.queries == []


@pytest.mark.asyncio
async def test_malformed_embedding_response_keeps_fan_out_results(config, metrics):
    """Test a non-JSON embedding reply for the auxiliary query leaves fan-out intact."""
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>"))
    embedder = HTTPEmbeddingProvider(
        "http://embed:9006", client=httpx.AsyncClient(transport=transport), metrics=metrics
    )
    index = FakeHybridIndex({"w1-sales": [make_candidate("boards", type="collection")]})
    executor = SearchExecutor(index, embedder=embedder, config=config, metrics=metrics)

    results = await executor.perform_search(
        "w1", "snowboards", DENSE, SPARSE, Classification(type="collection"), use_all_namespaces=True
    )

    assert [r.id for r in results] == ["boards"]
    await embedder.close()


@pytest.mark.asyncio
async def test_retrieve_embeds_once_without_previous_turn(config, metrics):
    """Test the question is embedded once when there is no previous turn."""
    index = FakeHybridIndex({"w1-sales": [make_candidate("board", type="product")]})
    embedder = FakeEmbeddingProvider(dimension=3)
    executor = SearchExecutor(index, embedder=embedder, config=config, metrics=metrics)

    result = await executor.retrieve("w1", "nova board flex rating", sales_classification())

    assert embedder.calls == ["nova board flex rating"]
    assert [r.id for r in result.main] == ["board"]
