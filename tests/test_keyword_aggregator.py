from job_pilot.models import AccountStatus
from job_pilot.services.keyword_aggregator import aggregate_search_queries, sanitize_keyword


def test_sanitize_keyword_strips_and_lowercases():
    assert sanitize_keyword("  React   Developer!! ") == "react developer"
    assert sanitize_keyword("C#") == "c#"
    assert sanitize_keyword("node.js") == "node.js"


def test_sanitize_keyword_rejects_junk():
    assert sanitize_keyword("a") is None
    assert sanitize_keyword("jobs") is None
    assert sanitize_keyword("x" * 61) is None
    assert sanitize_keyword(None) is None
    assert sanitize_keyword("<script>") == "script"


def test_aggregate_merges_users_and_locations(db, make_user):
    make_user(keywords=["React", "python"], city="Berlin", country="Germany")
    make_user(keywords=["react "], city="Lahore")
    make_user(keywords=["golang"], account_status=AccountStatus.PAUSED)
    make_user(keywords=[])

    queries = aggregate_search_queries(db)

    assert [q.keyword for q in queries] == ["react", "python"]
    react = queries[0]
    assert react.user_count == 2
    assert react.candidate_locations == sorted({"Remote", "Berlin", "Germany", "Lahore"})
    assert queries[1].candidate_locations == sorted({"Remote", "Berlin", "Germany"})


def test_aggregate_top_n_keeps_most_requested(db, make_user):
    make_user(keywords=["python", "django"])
    make_user(keywords=["python"])
    make_user(keywords=["rust"])

    queries = aggregate_search_queries(db, top_n=1)

    assert len(queries) == 1
    assert queries[0].keyword == "python"


def test_aggregate_every_keyword_has_remote(db, make_user):
    make_user(keywords=["data engineer"])
    queries = aggregate_search_queries(db)
    assert queries[0].candidate_locations == ["Remote"]


def test_aggregate_folds_location_case(db, make_user):
    make_user(keywords=["python"], city="Berlin")
    make_user(keywords=["python"], city=" berlin", country="GERMANY")

    queries = aggregate_search_queries(db)

    assert queries[0].candidate_locations == ["Berlin", "Germany", "Remote"]
