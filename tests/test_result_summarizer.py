"""
Tests for result summarization.
"""
from services.errors import ExecutionError
from services.llm_client import CompletionUnavailable
from services.result_summarizer import DEFAULT_RELATED_QUESTIONS, ResultSummarizer

from conftest import FakeCompletionClient

CLIENTS = {"clients": [{"id": "1", "name": "Acme"}, {"id": "2", "name": "Globex"}]}


class TestRecordCounting:

    def test_lists_are_counted(self):
        assert ResultSummarizer.record_count(CLIENTS) == 2

    def test_aggregate_count_is_used(self):
        data = {"payrollsAggregate": {"aggregate": {"count": 42}}}
        assert ResultSummarizer.record_count(data) == 42

    def test_single_object_counts_once(self):
        assert ResultSummarizer.record_count({"clientsByPk": {"id": "1"}}) == 1

    def test_empty(self):
        assert ResultSummarizer.record_count(None) == 0
        assert ResultSummarizer.record_count({"clients": []}) == 0

    def test_analyze_results(self):
        analysis = ResultSummarizer().analyze_results(CLIENTS)

        assert analysis == {"record_count": 2, "tables": ["clients"], "fields": ["id", "name"]}


class TestBusinessContext:

    def test_first_match_wins(self):
        assert ResultSummarizer.determine_business_context("client payroll totals") == "Client Management"

    def test_default(self):
        assert ResultSummarizer.determine_business_context("anything else") == "Business Operations"

    def test_related_questions(self):
        summarizer = ResultSummarizer()

        assert "Which payrolls are currently active?" in summarizer.related_questions("payroll status")
        assert summarizer.related_questions("weather") == DEFAULT_RELATED_QUESTIONS


class TestFallbackAnswer:

    def test_no_data(self):
        answer = ResultSummarizer().fallback_answer("list clients", None)
        assert answer.startswith("I couldn't find any data")

    def test_zero_rows(self):
        answer = ResultSummarizer().fallback_answer("list clients", {"clients": []})
        assert answer.startswith("No records found for your client management query")

    def test_role_specific_note(self):
        summarizer = ResultSummarizer()

        manager = summarizer.fallback_answer("list clients", CLIENTS, "manager")
        consultant = summarizer.fallback_answer("list clients", CLIENTS, "consultant")

        assert manager.startswith("Found 2 clients matching your query.")
        assert "relationship data" in manager
        assert consultant.endswith("Here are the details you requested.")

    def test_singular_and_default_context(self):
        answer = ResultSummarizer().fallback_answer("what's new", {"notes": [{"id": "1"}]})
        assert answer.startswith("Found 1 record for your query.")

    def test_schedule_plural(self):
        data = {"workSchedule": [{"id": "1"}, {"id": "2"}]}
        answer = ResultSummarizer().fallback_answer("show the schedule", data)
        assert answer.startswith("Found 2 schedule entries")


class TestErrorAnswer:

    def test_permission_error_for_viewer(self):
        answer = ResultSummarizer().error_answer(ExecutionError("permission denied"), "viewer")
        assert "elevated permissions" in answer

    def test_permission_error_for_staff(self):
        answer = ResultSummarizer().error_answer(ExecutionError("access denied"), "consultant")
        assert "administrator" in answer

    def test_generic_error(self):
        answer = ResultSummarizer().error_answer(ExecutionError("boom"))
        assert answer.startswith("I encountered an issue")


class TestSummarize:

    async def test_uses_language_model(self):
        client = FakeCompletionClient(["There are two clients: Acme and Globex."])

        answer = await ResultSummarizer(client).summarize("list clients", CLIENTS, "query { clients { id } }")

        assert answer == "There are two clients: Acme and Globex."
        prompt = client.calls[0][1]["content"]
        assert "Acme" in prompt
        assert "Records returned: 2" in prompt
        assert "Fields: id, name" in prompt

    async def test_skips_model_for_zero_aggregate(self):
        client = FakeCompletionClient(["unused"])
        data = {"payrollsAggregate": {"aggregate": {"count": 0}}}

        answer = await ResultSummarizer(client).summarize("how many payrolls", data)

        assert answer.startswith("No records found")
        assert client.calls == []

    async def test_falls_back_when_model_fails(self):
        client = FakeCompletionClient(error=CompletionUnavailable("down"))

        answer = await ResultSummarizer(client).summarize("list clients", CLIENTS)

        assert answer.startswith("Found 2 clients")

    async def test_skips_model_for_empty_results(self):
        client = FakeCompletionClient(["unused"])

        answer = await ResultSummarizer(client).summarize("list clients", {"clients": []})

        assert answer.startswith("No records found")
        assert client.calls == []

    async def test_without_model(self):
        assert (await ResultSummarizer().summarize("list clients", CLIENTS)).startswith("Found 2 clients")
