import pytest


def question_payload(title, points, **overrides):
    payload = {
        "title": title,
        "question_type": "multiple_choice",
        "difficulty": "easy",
        "subject": "Math",
        "grade": "5",
        "points": points,
        "options": [
            {"text": "3", "is_correct": False},
            {"text": "4", "is_correct": True},
        ],
        "explanation": "Count them",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def published_quiz(client, teacher, student, headers):
    """Quiz built through the teacher API and assigned to the student"""
    auth = headers(teacher)
    choice = client.post("/teacher/questions", json=question_payload("What is two plus two?", 5), headers=auth)
    short = client.post(
        "/teacher/questions",
        json=question_payload(
            "Capital of France?", 10, question_type="short_answer", options=[], correct_answer="Paris"
        ),
        headers=auth,
    )
    assert choice.status_code == short.status_code == 201

    response = client.post(
        "/teacher/quizzes",
        json={
            "title": "Week 1",
            "subject": "Math",
            "grade": "5",
            "time_limit": 30,
            "status": "active",
            "questions": [choice.json()["question_id"], short.json()["question_id"]],
        },
        headers=auth,
    )
    assert response.status_code == 201
    quiz = response.json()

    response = client.post(
        f"/teacher/quizzes/{quiz['quiz_id']}/assign", json={"student_ids": [student.user_id]}, headers=auth
    )
    assert response.json()["assigned_count"] == 1
    return quiz


def test_quiz_response_shape(published_quiz, teacher, student):
    assert published_quiz["total_points"] == 15
    assert published_quiz["created_by"] == teacher.user_id
    assert len(published_quiz["questions"]) == 2
    assert published_quiz["passing_score"] == 60
    assert published_quiz["is_deleted"] is False


def test_full_attempt_flow(client, published_quiz, teacher, student, headers, clock, notifier):
    auth = headers(student)
    assert notifier.kinds() == ["quiz_assignment"]

    response = client.get("/quizzes/my-quizzes", headers=auth)
    assert [item["quiz"]["quiz_id"] for item in response.json()] == [published_quiz["quiz_id"]]
    assert response.json()[0]["attempt_count"] == 0

    response = client.post(f"/quizzes/{published_quiz['quiz_id']}/start", headers=auth)
    assert response.status_code == 200
    started = response.json()
    attempt_id = started["attempt"]["attempt_id"]
    assert started["attempt"]["status"] == "in_progress"
    assert started["attempt"]["quiz_id"] == published_quiz["quiz_id"]
    for question in started["questions"]:
        assert "correct_answer" not in question
        assert "explanation" not in question
        assert all(set(option) == {"text"} for option in question["options"])

    # starting again resumes the open attempt
    again = client.post(f"/quizzes/{published_quiz['quiz_id']}/start", headers=auth).json()
    assert again["attempt"]["attempt_id"] == attempt_id

    clock.advance(minutes=35)
    choice_id, short_id = published_quiz["questions"]
    response = client.post(
        f"/quizzes/attempts/{attempt_id}/submit",
        json={
            "answers": [
                {"question_id": choice_id, "selected_answer": "3"},
                {"question_id": short_id, "selected_answer": "paris"},
            ]
        },
        headers=auth,
    )
    assert response.status_code == 200
    result = response.json()
    assert result["attempt"]["status"] == "completed"
    assert result["attempt"]["score"] == 10
    assert result["attempt"]["percentage"] == pytest.approx(66.67, abs=0.01)
    assert result["attempt"]["is_passed"] is True
    assert result["attempt"]["is_late_submission"] is True
    assert result["answers"][1]["question"]["correct_answer"] == "Paris"

    response = client.post(f"/quizzes/attempts/{attempt_id}/submit", json={"answers": []}, headers=auth)
    assert response.status_code == 400
    assert response.json() == {"error": "Quiz already submitted", "type": "invalid_state"}

    response = client.get(f"/quizzes/attempts/{attempt_id}/result", headers=auth)
    assert response.json()["attempt"]["score"] == 10

    attempts = client.get("/quizzes/my-attempts", headers=auth).json()
    assert [a["attempt"]["attempt_id"] for a in attempts] == [attempt_id]
    assert attempts[0]["quiz_title"] == "Week 1"

    results = client.get(f"/teacher/quizzes/{published_quiz['quiz_id']}/results", headers=headers(teacher))
    assert results.status_code == 200
    assert results.json()[0]["student_email"] == student.email

    overview = client.get("/progress/overview", headers=auth).json()
    assert overview["total_quizzes"] == 1
    assert overview["passed_quizzes"] == 1

    chart = client.get("/progress/chart", headers=auth).json()
    assert chart["trend"] == "stable"
    assert chart["summary"]["total_attempts"] == 1


def test_submission_past_hard_limit(client, published_quiz, student, headers, clock):
    auth = headers(student)
    attempt_id = client.post(f"/quizzes/{published_quiz['quiz_id']}/start", headers=auth).json()["attempt"][
        "attempt_id"
    ]
    clock.advance(minutes=46)

    response = client.post(f"/quizzes/attempts/{attempt_id}/submit", json={"answers": []}, headers=auth)

    assert response.status_code == 400
    assert response.json()["error"] == "Submission rejected. Time limit exceeded by too much."


def test_unassigned_student_cannot_start(client, published_quiz, make_user, headers):
    response = client.post(f"/quizzes/{published_quiz['quiz_id']}/start", headers=headers(make_user()))
    assert response.status_code == 403


def test_other_student_cannot_read_result(client, published_quiz, student, make_user, headers):
    attempt_id = client.post(
        f"/quizzes/{published_quiz['quiz_id']}/start", headers=headers(student)
    ).json()["attempt"]["attempt_id"]

    response = client.get(f"/quizzes/attempts/{attempt_id}/result", headers=headers(make_user()))
    assert response.status_code == 403


class TestRoleGuards:
    def test_student_cannot_use_teacher_endpoints(self, client, student, headers):
        response = client.get("/teacher/dashboard", headers=headers(student))
        assert response.status_code == 403
        assert response.json()["type"] == "forbidden"

    def test_teacher_cannot_use_admin_endpoints(self, client, teacher, headers):
        assert client.get("/admin/students", headers=headers(teacher)).status_code == 403

    def test_teacher_cannot_take_quizzes(self, client, teacher, headers):
        assert client.get("/quizzes/my-quizzes", headers=headers(teacher)).status_code == 403

    def test_admin_can_use_teacher_endpoints(self, client, admin, headers):
        assert client.get("/teacher/dashboard", headers=headers(admin)).status_code == 200


class TestTeacherOwnership:
    def test_other_teacher_cannot_edit_quiz(self, client, published_quiz, other_teacher, headers):
        response = client.put(
            f"/teacher/quizzes/{published_quiz['quiz_id']}",
            json={"title": "Taken over"},
            headers=headers(other_teacher),
        )
        assert response.status_code == 403

    def test_other_teacher_cannot_view_question(self, client, published_quiz, other_teacher, headers):
        question_id = published_quiz["questions"][0]
        response = client.get(f"/teacher/questions/{question_id}", headers=headers(other_teacher))
        assert response.status_code == 403

    def test_admin_edits_any_quiz(self, client, published_quiz, admin, headers):
        response = client.put(
            f"/admin/quizzes/{published_quiz['quiz_id']}",
            json={"passing_score": 80},
            headers=headers(admin),
        )
        assert response.status_code == 200
        assert response.json()["passing_score"] == 80

    def test_delete_referenced_question_deactivates_it(self, client, published_quiz, teacher, headers):
        question_id = published_quiz["questions"][0]
        response = client.delete(f"/teacher/questions/{question_id}", headers=headers(teacher))

        assert response.status_code == 200
        assert response.json()["soft_deleted"] is True

    def test_delete_quiz_with_attempts_archives_it(self, client, published_quiz, teacher, student, headers):
        client.post(f"/quizzes/{published_quiz['quiz_id']}/start", headers=headers(student))

        response = client.delete(f"/teacher/quizzes/{published_quiz['quiz_id']}", headers=headers(teacher))
        assert response.json()["soft_deleted"] is True

        response = client.get(f"/teacher/quizzes/{published_quiz['quiz_id']}", headers=headers(teacher))
        assert response.status_code == 404

    def test_invalid_question_payload(self, client, teacher, headers):
        payload = question_payload(
            "Two right answers?",
            1,
            options=[{"text": "a", "is_correct": True}, {"text": "b", "is_correct": True}],
        )
        response = client.post("/teacher/questions", json=payload, headers=headers(teacher))
        assert response.status_code == 422


class TestAdminApi:
    def test_create_teacher_and_list_students(self, client, admin, student, headers, notifier):
        auth = headers(admin)
        response = client.post(
            "/admin/teachers",
            json={"email": "jane@example.com", "first_name": "Jane", "last_name": "Doe"},
            headers=auth,
        )
        assert response.status_code == 201
        assert response.json()["invitation_sent"] is True
        assert notifier.kinds() == ["teacher_invite"]

        students = client.get("/admin/students", headers=auth).json()
        assert [s["user_id"] for s in students["students"]] == [student.user_id]

    def test_toggle_and_delete_student(self, client, admin, student, headers):
        auth = headers(admin)

        response = client.patch(f"/admin/students/{student.user_id}/status", headers=auth)
        assert response.json()["is_active"] is False

        response = client.patch(
            f"/admin/students/{student.user_id}/status", json={"is_active": True}, headers=auth
        )
        assert response.json()["is_active"] is True

        response = client.delete(f"/admin/users/{student.user_id}", headers=auth)
        assert response.json()["soft_deleted"] is True
        assert client.get("/auth/me", headers=headers(student)).status_code == 401

    def test_import_students(self, client, admin, headers):
        content = b"email,firstName,lastName,grade,password\nkim@example.com,Kim,Lee,5,Secret1!\n"
        response = client.post(
            "/admin/students/import",
            files={"file": ("students.csv", content, "text/csv")},
            headers=headers(admin),
        )
        assert response.status_code == 200
        assert response.json() == {"total": 1, "created": 1, "failed": 0, "errors": []}

    def test_import_rejects_other_files(self, client, admin, headers):
        response = client.post(
            "/admin/students/import",
            files={"file": ("students.xlsx", b"data", "application/octet-stream")},
            headers=headers(admin),
        )
        assert response.status_code == 400

    def test_audit_log(self, client, admin, student, headers):
        auth = headers(admin)
        client.patch(f"/admin/students/{student.user_id}/status", headers=auth)

        response = client.get("/admin/audit-logs", params={"action": "STATUS_CHANGE"}, headers=auth)
        assert response.status_code == 200
        logs = response.json()["logs"]
        assert len(logs) == 1
        assert logs[0]["changed_by"] == admin.user_id
        assert logs[0]["target_id"] == student.user_id
