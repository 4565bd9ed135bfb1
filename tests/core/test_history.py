from toolrobot.core.history import CallHistory


class TestCallHistory:
    def test_empty(self):
        history = CallHistory()
        assert len(history) == 0
        assert history.last() is None
        assert history.summary() == ""

    def test_record(self):
        history = CallHistory()
        history.record("add(2, 3)", "5")
        history.record("multiply(5, 2)", "10")

        assert "add(2, 3)" in history
        assert history.get("add(2, 3)") == "5"
        assert history.get("subtract(1, 1)") is None
        assert list(history) == ["add(2, 3)", "multiply(5, 2)"]
        assert history.last() == ("multiply(5, 2)", "10")

    def test_last_write_wins(self):
        history = CallHistory({"add(2, 3)": "5", "multiply(5, 2)": "10"})
        history.record("add(2, 3)", "five")

        assert len(history) == 2
        assert history.items() == [("multiply(5, 2)", "10"), ("add(2, 3)", "five")]

    def test_summary(self):
        history = CallHistory({"add(2, 3)": "5", "multiply(5, 2)": "10"})
        assert history.summary() == "add(2, 3) has result 5. multiply(5, 2) has result 10."

    def test_clear(self):
        history = CallHistory({"add(2, 3)": "5"})
        history.clear()
        assert len(history) == 0
        assert "add(2, 3)" not in history

    def test_copies_initial_records(self):
        records = {"add(2, 3)": "5"}
        history = CallHistory(records)
        history.clear()
        assert records == {"add(2, 3)": "5"}
