"""
End-to-end HTTP tests for the student flow under /api.

Tests call real endpoints:
- POST /api/auth/login, GET /api/auth/me, PUT /api/auth/avatar
- GET /api/exams, POST /api/exams/{id}/start|answer|finish
- GET /api/exams/attempt/{id}
- GET /api/results/history|stats|certificate/{id}

POSITIVE CASES:
- A student logs in, takes an exam and sees the result
- Resuming through the API returns the same attempt
- A passed attempt yields a certificate

NEGATIVE CASES:
- ❌ Requests without or with a bad token get 401 with an error body
- ❌ Students cannot reach administrator routes
- ❌ Malformed bodies are rejected with 400
"""

from conftest import CORRECT_OPTIONS, backdate_attempt, login_headers


def _start(client, headers, exam_id):
    response = client.post(f"/api/exams/{exam_id}/start", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def _answer(client, headers, exam_id, attempt_id, question_id, option):
    return client.post(
        f"/api/exams/{exam_id}/answer",
        headers=headers,
        json={"attemptId": attempt_id, "questionId": question_id, "selectedOption": option},
    )


class TestAuthEndpoints:
    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_unknown_route_uses_error_body(self, client):
        response = client.get("/api/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_login_and_me(self, client):
        response = client.post("/api/auth/login", json={"dni": "11223344b", "name": "Carol Student"})
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["code"] == "11223344B"
        assert body["user"]["role"] == "student"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.json()["user"]["name"] == "Carol Student"

    def test_login_validation_error_body(self, client):
        response = client.post("/api/auth/login", json={"code": "123", "name": "Carol"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_admin_login_requires_password(self, client):
        response = client.post("/api/auth/login", json={"code": "ADMIN"})
        assert response.status_code == 400
        assert response.json() == {"error": "Password required for administrator"}

    def test_admin_wrong_password_is_unauthorized(self, client):
        response = client.post("/api/auth/login", json={"code": "ADMIN", "password": "nope"})
        assert response.status_code == 401

    def test_missing_token_rejected(self, client):
        response = client.get("/api/exams")
        assert response.status_code == 401
        assert response.json() == {"error": "Token not provided"}

    def test_invalid_token_rejected(self, client):
        response = client.get("/api/exams", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    def test_student_cannot_reach_admin_routes(self, client, student_headers):
        response = client.get("/api/admin/stats", headers=student_headers)
        assert response.status_code == 403

    def test_avatar_update(self, client, student_headers):
        response = client.put("/api/auth/avatar", headers=student_headers, json={"avatar": "data:image/png;base64,AA"})
        assert response.status_code == 200
        me = client.get("/api/auth/me", headers=student_headers).json()
        assert me["user"]["avatar"] == "data:image/png;base64,AA"

    def test_logout(self, client, student_headers):
        assert client.post("/api/auth/logout", headers=student_headers).status_code == 200


class TestStudentExamFlow:
    def test_take_exam_end_to_end(self, client, student_headers, make_exam):
        """
        POSITIVE CASE: list, start, answer, finish, then read history, review and certificate.
        """
        exam = make_exam(question_count=5)

        catalog = client.get("/api/exams", headers=student_headers).json()["exams"]
        assert [e["id"] for e in catalog] == [exam.id]
        assert catalog[0]["canStart"] is True

        started = _start(client, student_headers, exam.id)
        attempt_id = started["attemptId"]
        for position, question in enumerate(started["questions"][:3]):
            response = _answer(client, student_headers, exam.id, attempt_id, question["id"], CORRECT_OPTIONS[position])
            assert response.json() == {"success": True}
        _answer(client, student_headers, exam.id, attempt_id, started["questions"][3]["id"], 0)

        finished = client.post(
            f"/api/exams/{exam.id}/finish",
            headers=student_headers,
            json={"attemptId": attempt_id, "studentNote": "Fun"},
        )
        assert finished.status_code == 200
        result = finished.json()
        assert result["score"] == 6.0
        assert result["passed"] is True
        assert (result["correct"], result["incorrect"], result["unanswered"]) == (3, 1, 1)

        again = client.post(f"/api/exams/{exam.id}/finish", headers=student_headers, json={"attemptId": attempt_id})
        assert again.status_code == 400

        history = client.get("/api/results/history", headers=student_headers).json()["results"]
        assert [r["id"] for r in history] == [attempt_id]

        detail = client.get(f"/api/exams/attempt/{attempt_id}", headers=student_headers).json()
        assert detail["canViewAnswers"] is True
        assert len(detail["review"]) == 5

        cert = client.get(f"/api/results/certificate/{attempt_id}", headers=student_headers)
        assert cert.status_code == 200
        assert len(cert.json()["certificate"]["id"]) == 12

        stats = client.get("/api/results/stats", headers=student_headers).json()
        assert stats["totalExams"] == 1
        assert stats["passedExams"] == 1

        blocked = client.post(f"/api/exams/{exam.id}/start", headers=student_headers)
        assert blocked.status_code == 400
        assert blocked.json() == {"error": "You have already passed this exam"}

    def test_resume_through_api(self, client, student_headers, make_exam):
        exam = make_exam(question_count=3, time_limit=300)
        first = _start(client, student_headers, exam.id)
        _answer(client, student_headers, exam.id, first["attemptId"], first["questions"][1]["id"], 3)

        second = _start(client, student_headers, exam.id)

        assert second["attemptId"] == first["attemptId"]
        assert second["resumed"] is True
        assert second["timeLeft"] <= first["timeLeft"]
        # JSON object keys are strings
        assert second["answers"] == {str(first["questions"][1]["id"]): 3}

    def test_answer_after_expiry_reports_time_expired(self, client, session, student_headers, make_exam):
        exam = make_exam(question_count=3, time_limit=60)
        started = _start(client, student_headers, exam.id)
        backdate_attempt(session, started["attemptId"], 120)

        response = _answer(client, student_headers, exam.id, started["attemptId"], started["questions"][0]["id"], 1)

        assert response.status_code == 400
        assert response.json() == {"error": "The time for this exam has expired"}
        history = client.get("/api/results/history", headers=student_headers).json()["results"]
        assert history[0]["id"] == started["attemptId"]
        assert history[0]["unanswered"] == 3

    def test_failed_attempt_hides_review_and_certificate(self, client, student_headers, make_exam):
        exam = make_exam(question_count=4, max_attempts=2)
        started = _start(client, student_headers, exam.id)
        client.post(f"/api/exams/{exam.id}/finish", headers=student_headers, json={"attemptId": started["attemptId"]})

        detail = client.get(f"/api/exams/attempt/{started['attemptId']}", headers=student_headers).json()
        assert detail["canViewAnswers"] is False
        assert detail["review"] is None

        cert = client.get(f"/api/results/certificate/{started['attemptId']}", headers=student_headers)
        assert cert.status_code == 400

    def test_attempt_of_other_student_is_not_found(self, client, student_headers, make_exam):
        exam = make_exam(question_count=2)
        started = _start(client, student_headers, exam.id)
        client.post(f"/api/exams/{exam.id}/finish", headers=student_headers, json={"attemptId": started["attemptId"]})

        other = login_headers(client, "87654321X", name="Bob Student")
        response = client.get(f"/api/exams/attempt/{started['attemptId']}", headers=other)
        assert response.status_code == 404

    def test_running_attempt_result_is_not_found(self, client, student_headers, make_exam):
        exam = make_exam(question_count=2)
        started = _start(client, student_headers, exam.id)

        response = client.get(f"/api/exams/attempt/{started['attemptId']}", headers=student_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Attempt not found"}

    def test_unknown_exam_not_found(self, client, student_headers):
        response = client.post("/api/exams/999/start", headers=student_headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Exam not found"}

    def test_malformed_answer_body_rejected(self, client, student_headers, make_exam):
        exam = make_exam(question_count=2)
        started = _start(client, student_headers, exam.id)

        response = client.post(
            f"/api/exams/{exam.id}/answer",
            headers=student_headers,
            json={"attempt_id": started["attemptId"], "q": 1},
        )
        assert response.status_code == 400
        assert "error" in response.json()

    def test_out_of_range_option_rejected(self, client, student_headers, make_exam):
        exam = make_exam(question_count=2)
        started = _start(client, student_headers, exam.id)

        response = _answer(client, student_headers, exam.id, started["attemptId"], started["questions"][0]["id"], 5)
        assert response.status_code == 400
