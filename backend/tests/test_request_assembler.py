from __future__ import annotations

from context_budget import CHAT_PARAMS, SEARCH_PARAMS, UPLOAD_PARAMS, ConversationTurn, PlanResult, RequestAssembler


def test_messages_follow_base_summary_history_current_order():
    plan = PlanResult(
        system_messages=("base instructions", "Previous conversation summary: earlier talk"),
        history_messages=(
            ConversationTurn(role="user", content="q1"),
            ConversationTurn(role="user", content="q2"),
        ),
        was_summarized=True,
        estimated_input_tokens=5,
    )

    request = RequestAssembler(CHAT_PARAMS).build(plan, "current question")

    assert request.messages == [
        {"role": "system", "content": "base instructions"},
        {"role": "system", "content": "Previous conversation summary: earlier talk"},
        {"role": "user", "content": "q1"},
        {"role": "user", "content": "q2"},
        {"role": "user", "content": "current question"},
    ]


def test_chat_params_are_passed_through_to_payload():
    plan = PlanResult(system_messages=("base",), history_messages=(), was_summarized=False, estimated_input_tokens=1)

    payload = RequestAssembler(CHAT_PARAMS).build(plan, "hi").as_payload()

    assert payload["model"] == "sonar-pro"
    assert payload["temperature"] == 0.2
    assert payload["top_p"] == 0.9
    assert payload["max_tokens"] == 1000
    assert payload["presence_penalty"] == 0
    assert payload["frequency_penalty"] == 0
    assert payload["stream"] is False
    assert payload["search_mode"] == "web"
    assert payload["search_domain_filter"] == ["ncbi.nlm.nih.gov", "mayoclinic.org", "webmd.com", "medlineplus.gov"]
    assert payload["search_recency_filter"] == "month"


def test_search_and_upload_presets_differ_only_where_routes_differ():
    assert SEARCH_PARAMS.search_domain_filter == ("government.gov", "nature.com", "science.org")
    upload_payload = UPLOAD_PARAMS.as_payload()
    assert upload_payload["max_tokens"] == 4000
    assert "search_mode" not in upload_payload
    assert "search_domain_filter" not in upload_payload
    assert "top_p" not in upload_payload
