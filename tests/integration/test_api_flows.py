import pytest
from httpx import AsyncClient

from archstudy.remote import QUESTIONS_PATH, history_path

ADMIN_UID = "admin-uid"

async def _sign_in(app_context, user_id):
    await app_context.identity.sign_in(app_context.identity.make_user(user_id))
    await app_context.session.wait()

class TestBasics:
    """Integration tests for read endpoints"""

    @pytest.mark.asyncio
    async def test_root(self, client: AsyncClient):
        response = await client.get("/")
        assert response.status_code == 200
        assert "version" in response.json()

    @pytest.mark.asyncio
    async def test_builtin_questions_served_after_startup_sync(self, client: AsyncClient):
        response = await client.get("/questions/")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["questions"][0]["yearLabel"] == "令和2年"

    @pytest.mark.asyncio
    async def test_get_question(self, client: AsyncClient):
        assert (await client.get("/questions/2020-01-001")).status_code == 200
        assert (await client.get("/questions/missing")).status_code == 404

    @pytest.mark.asyncio
    async def test_field_list(self, client: AsyncClient):
        response = await client.get("/questions/fields/2")
        assert response.status_code == 200
        assert response.json()["fields"][0]["id"] == "2-1"
        assert (await client.get("/questions/fields/9")).status_code == 404

    @pytest.mark.asyncio
    async def test_me_requires_sign_in(self, client: AsyncClient):
        response = await client.get("/auth/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_signin_unavailable_offline_only(self, client: AsyncClient):
        response = await client.post("/auth/signin", json={"email": "a@example.com", "password": "x"})
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_sync_status(self, client: AsyncClient):
        response = await client.get("/sync/status")
        assert response.status_code == 200
        assert response.json()["state"] == "synced"

        response = await client.post("/sync/run")
        assert response.status_code == 200
        assert response.json()["results"]["questions"]["outcome"] == "skipped"

class TestStudyFlow:
    """Integration tests for answering and statistics"""

    @pytest.mark.asyncio
    async def test_answer_then_stats(self, client: AsyncClient):
        start = await client.post("/study/start", json={"mode": "all", "shuffle": False})
        assert start.status_code == 200
        ids = [q["id"] for q in start.json()["questions"]]
        assert ids == ["2020-01-001", "2020-01-002"]

        answer = await client.post("/study/answer", json={"question_id": ids[0], "selected_answer": 2})
        assert answer.status_code == 200
        assert answer.json()["isCorrect"] is True
        await client.post("/study/answer", json={"question_id": ids[1], "selected_answer": 1})

        result = await client.post("/study/result", json={"question_ids": ids})
        assert result.json() == {"total": 2, "answered": 2, "correct": 1, "accuracy": 50}

        summary = (await client.get("/stats/summary")).json()
        assert summary["total_answered"] == 2
        assert summary["wrong_questions"] == 1

        wrong = (await client.get("/stats/wrong")).json()
        assert wrong["question_ids"] == [ids[1]]

        history = (await client.get("/history/")).json()["history"]
        assert len(history) == 2

        for path in ("/stats/subjects", "/stats/fields/1", "/stats/years", "/stats/mastery", "/stats/progress"):
            assert (await client.get(path)).status_code == 200

    @pytest.mark.asyncio
    async def test_answer_validation(self, client: AsyncClient):
        response = await client.post("/study/answer", json={"question_id": "2020-01-001", "selected_answer": 5})
        assert response.status_code == 422

        response = await client.post("/study/answer", json={"question_id": "missing", "selected_answer": 1})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_signed_in_answer_reaches_remote(self, client: AsyncClient, app_context, remote):
        await _sign_in(app_context, "user-uid")

        response = await client.post("/study/answer", json={"question_id": "2020-01-001", "selected_answer": 2})
        await app_context.engine.wait_for_pushes()

        entry_id = response.json()["entry"]["id"]
        assert entry_id in remote.data[history_path("user-uid")]

    @pytest.mark.asyncio
    async def test_memo_round_trip(self, client: AsyncClient):
        response = await client.put("/study/memos/2020-01-001", json={"content": "check the ventilation formula"})
        assert response.status_code == 200
        assert response.json()["synced"] is False

        memo = (await client.get("/study/memos/2020-01-001")).json()
        assert memo["content"] == "check the ventilation formula"

class TestHistoryFlow:

    @pytest.mark.asyncio
    async def test_clear_history_remote_failure(self, client: AsyncClient, app_context, remote):
        await _sign_in(app_context, "user-uid")
        await client.post("/study/answer", json={"question_id": "2020-01-001", "selected_answer": 2})
        remote.available = False

        response = await client.delete("/history/")

        assert response.status_code == 502
        assert len((await client.get("/history/")).json()["history"]) == 1

    @pytest.mark.asyncio
    async def test_clear_history(self, client: AsyncClient, app_context, remote):
        await _sign_in(app_context, "user-uid")
        await client.post("/study/answer", json={"question_id": "2020-01-001", "selected_answer": 2})

        response = await client.delete("/history/")

        assert response.status_code == 200
        assert (await client.get("/history/")).json()["history"] == []
        assert remote.data[history_path("user-uid")] == {}

class TestAdminFlow:
    """Integration tests for admin-only question writes"""

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, client: AsyncClient, make_question):
        response = await client.put("/admin/questions/2024-01-001", json=make_question().to_record())
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client: AsyncClient, app_context, remote, make_question):
        await _sign_in(app_context, "user-uid")

        response = await client.put("/admin/questions/2024-01-001", json=make_question().to_record())

        assert response.status_code == 403
        assert await app_context.local.get_question("2024-01-001") is None
        assert "2024-01-001" not in remote.data[QUESTIONS_PATH]

    @pytest.mark.asyncio
    async def test_admin_save_and_delete(self, client: AsyncClient, app_context, remote, make_question):
        await _sign_in(app_context, ADMIN_UID)

        response = await client.put("/admin/questions/2024-01-001", json=make_question().to_record())
        assert response.status_code == 200
        assert "2024-01-001" in remote.data[QUESTIONS_PATH]
        assert await app_context.local.get_question("2024-01-001") is not None

        response = await client.delete("/admin/questions/2024-01-001")
        assert response.status_code == 200
        assert "2024-01-001" not in remote.data[QUESTIONS_PATH]

        assert (await client.delete("/admin/questions/2024-01-001")).status_code == 200

    @pytest.mark.asyncio
    async def test_admin_delete_with_stale_local_mirror(self, client: AsyncClient, app_context, remote, make_question):
        await _sign_in(app_context, ADMIN_UID)
        remote.data[QUESTIONS_PATH]["2024-01-001"] = make_question().to_record()

        response = await client.delete("/admin/questions/2024-01-001")

        assert response.status_code == 200
        assert "2024-01-001" not in remote.data[QUESTIONS_PATH]

    @pytest.mark.asyncio
    async def test_admin_save_remote_failure(self, client: AsyncClient, app_context, remote, make_question):
        await _sign_in(app_context, ADMIN_UID)
        remote.fail_writes = True

        response = await client.put("/admin/questions/2024-01-001", json=make_question().to_record())

        assert response.status_code == 502
        assert await app_context.local.get_question("2024-01-001") is None

    @pytest.mark.asyncio
    async def test_id_mismatch(self, client: AsyncClient, app_context, make_question):
        await _sign_in(app_context, ADMIN_UID)

        response = await client.put("/admin/questions/other", json=make_question().to_record())

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_csv_import(self, client: AsyncClient, app_context, remote):
        await _sign_in(app_context, ADMIN_UID)
        csv_text = (
            "年度,科目,番号,図,問題文,1,2,3,4,正答\n"
            "R6,学科Ⅴ（施工）,7,,施工計画に関する記述,a,b,c,d,4\n"
        )

        response = await client.post(
            "/admin/import-csv",
            files={"file": ("questions.csv", csv_text.encode("utf-8"), "text/csv")},
        )

        assert response.status_code == 200
        assert response.json()["imported"] == 1
        assert "2024-05-007" in remote.data[QUESTIONS_PATH]

    @pytest.mark.asyncio
    async def test_upload_builtin(self, client: AsyncClient, app_context, remote):
        await _sign_in(app_context, ADMIN_UID)

        response = await client.post("/admin/upload-builtin")

        assert response.status_code == 200
        assert response.json()["uploaded"] == 2
        assert set(remote.data[QUESTIONS_PATH]) == {"2020-01-001", "2020-01-002"}

class TestDataFlow:
    """Integration tests for export and import"""

    @pytest.mark.asyncio
    async def test_export_import(self, client: AsyncClient, app_context):
        await client.post("/study/answer", json={"question_id": "2020-01-001", "selected_answer": 2})

        export = await client.get("/data/export")
        assert export.status_code == 200
        assert "attachment" in export.headers["content-disposition"]
        payload = export.json()
        assert len(payload["questions"]) == 2
        assert len(payload["history"]) == 1

        await app_context.local.clear_history()
        response = await client.post("/data/import", json=payload)

        assert response.status_code == 200
        assert response.json() == {"questions": 2, "history": 1}
        assert len(await app_context.local.get_all_history()) == 1

    @pytest.mark.asyncio
    async def test_import_rejects_malformed_payload(self, client: AsyncClient, app_context):
        response = await client.post("/data/import", json={"questions": []})

        assert response.status_code == 400
        assert len(await app_context.local.get_all_questions()) == 2

    @pytest.mark.asyncio
    async def test_delete_all_data_then_resync(self, client: AsyncClient, app_context):
        await client.post("/study/answer", json={"question_id": "2020-01-001", "selected_answer": 2})
        await client.put("/study/memos/2020-01-001", json={"content": "note"})

        response = await client.delete("/data/")

        assert response.status_code == 200
        assert (await client.get("/questions/")).json()["total"] == 0
        assert (await client.get("/history/")).json()["history"] == []
        assert (await client.get("/study/memos/2020-01-001")).json()["content"] == ""

        response = await client.post("/sync/run")
        assert response.json()["results"]["questions"]["outcome"] == "replaced"
        assert (await client.get("/questions/")).json()["total"] == 2
