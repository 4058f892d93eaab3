"""Tests for students, instructor course assignments and the question bank."""

from exam_api.core.exceptions import ProcedureError
from exam_api.db.gateway import ProcedureResult

from conftest import rows


# ============================================
# Students
# ============================================

def test_student_sees_only_own_courses(client, gateway, student_headers):
    gateway.on("sp_get_student_courses", rows({
        "course_id": 2, "course_name": "Databases", "course_code": "DB101",
        "duration": 30, "enroll_date": "2024-02-01",
    }))

    response = client.get("/api/students/courses/99", headers=student_headers)

    assert response.status_code == 200
    assert response.json()["data"][0]["enrollDate"] == "2024-02-01"
    assert gateway.params_of("sp_get_student_courses") == {"student_id": 42}


def test_instructor_must_name_a_student(client, gateway, instructor_headers):
    response = client.get("/api/students/courses", headers=instructor_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Student ID is required"
    assert gateway.calls == []


def test_instructor_reads_any_student_courses(client, gateway, instructor_headers):
    gateway.on("sp_get_student_courses", rows())
    client.get("/api/students/courses/99", headers=instructor_headers)

    assert gateway.params_of("sp_get_student_courses") == {"student_id": 99}


def test_student_list_is_instructor_only(client, gateway, student_headers):
    response = client.get("/api/students", headers=student_headers)

    assert response.status_code == 403


def test_assign_course_twice(client, gateway, instructor_headers):
    gateway.on("sp_assign_course_to_student", ProcedureError("Student already assigned to course"))

    response = client.post(
        "/api/students/assign-course",
        json={"studentId": 42, "courseId": 2},
        headers=instructor_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Course is already assigned to this student"


def test_update_student_validates_email(client, gateway, instructor_headers):
    response = client.put(
        "/api/students/42",
        json={"name": "Mona", "email": "mona", "dateOfBirth": "2001-05-02", "trackId": 3},
        headers=instructor_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Please provide a valid email address"


def test_update_student(client, gateway, instructor_headers):
    response = client.put(
        "/api/students/42",
        json={"name": "Mona", "email": "mona@example.com", "dateOfBirth": "2001-05-02", "trackId": 3},
        headers=instructor_headers,
    )

    assert response.status_code == 200
    params = gateway.params_of("sp_update_student")
    assert params["student_id"] == 42
    assert params["date_of_birth"].isoformat() == "2001-05-02"


def test_delete_missing_student(client, gateway, instructor_headers):
    gateway.on("sp_delete_student", ProcedureError("Student does not exist"))

    response = client.delete("/api/students/42", headers=instructor_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Student not found"


# ============================================
# Instructor courses
# ============================================

def test_instructor_course_details_from_two_result_sets(client, gateway, instructor_headers):
    gateway.on("sp_get_instructor_course_details", ProcedureResult(recordsets=[
        [{
            "course_id": 2, "course_name": "Databases", "course_code": "DB101", "duration": 30,
            "instructor_id": 7, "instructor_name": "Ahmed", "instructor_email": "ahmed@example.com",
        }],
        [{"topic_name": "Joins"}, {"topic_name": "Indexes"}],
    ]))

    response = client.get("/api/instructor-course/my-courses/2", headers=instructor_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["instructor"] == {"id": 7, "name": "Ahmed", "email": "ahmed@example.com"}
    assert data["topics"] == ["Joins", "Indexes"]
    assert gateway.params_of("sp_get_instructor_course_details") == {"instructor_id": 7, "course_id": 2}


def test_instructor_course_details_refused(client, gateway, instructor_headers):
    gateway.on("sp_get_instructor_course_details", rows({
        "result": -1, "message": "You are not assigned to this course",
    }))

    response = client.get("/api/instructor-course/my-courses/2", headers=instructor_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "You are not assigned to this course"


def test_courses_with_topics_are_grouped(client, gateway, instructor_headers):
    gateway.on("sp_get_instructor_courses_with_topics", rows(
        {"course_id": 1, "course_name": "SQL", "topic_name": "Joins"},
        {"course_id": 1, "course_name": "SQL", "topic_name": "Views"},
        {"course_id": 2, "course_name": "Python", "topic_name": None},
    ))

    response = client.get("/api/instructor-course/my-courses-with-topics", headers=instructor_headers)

    body = response.json()
    assert body["count"] == 2
    assert body["data"][0]["topics"] == ["Joins", "Views"]
    assert body["data"][1]["topics"] == []


def test_instructor_without_courses(client, gateway, instructor_headers):
    gateway.on("sp_get_instructor_courses", rows({"result": -1, "message": "No courses assigned"}))

    response = client.get("/api/instructor-course/my-courses", headers=instructor_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "No courses assigned"


def test_instructor_course_routes_reject_students(client, gateway, student_headers):
    response = client.get("/api/instructor-course/my-courses", headers=student_headers)

    assert response.status_code == 403
    assert gateway.calls == []


def test_delete_topic_decodes_name(client, gateway, instructor_headers):
    response = client.delete(
        "/api/instructor-course/course-topic/2/Window%20Functions",
        headers=instructor_headers,
    )

    assert response.status_code == 200
    assert gateway.calls[0][1]["topic_name"] == "Window Functions"


# ============================================
# Questions
# ============================================

def test_add_mcq_question(client, gateway, instructor_headers):
    response = client.post("/api/questions", json={
        "questionText": "Which join keeps unmatched rows?",
        "questionType": "MCQ",
        "correctAnswer": "LEFT",
        "courseId": 2,
        "choice1": "INNER",
        "choice2": "LEFT",
    }, headers=instructor_headers)

    assert response.status_code == 201
    assert response.json()["data"]["choices"] == ["INNER", "LEFT"]
    params = gateway.params_of("sp_add_question")
    assert params["choice2"] == "LEFT"
    assert params["choice3"] is None


def test_mcq_needs_two_choices(client, gateway, instructor_headers):
    response = client.post("/api/questions", json={
        "questionText": "Pick one",
        "questionType": "MCQ",
        "correctAnswer": "A",
        "courseId": 2,
        "choice1": "A",
    }, headers=instructor_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "MCQ questions must have at least 2 choices"
    assert gateway.calls == []


def test_question_type_must_be_known(client, gateway, instructor_headers):
    response = client.post("/api/questions", json={
        "questionText": "Essay",
        "questionType": "ESSAY",
        "correctAnswer": "-",
        "courseId": 2,
    }, headers=instructor_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Question type must be either 'MCQ' or 'TF'"


def test_question_details_collect_choices(client, gateway, instructor_headers):
    gateway.on("sp_get_question_details", rows(
        {"question_id": 5, "question_text": "Q", "question_type": "MCQ", "Correct_Ans": "B",
         "course_id": 2, "choice_id": 1, "choice_text": "A"},
        {"question_id": 5, "question_text": "Q", "question_type": "MCQ", "Correct_Ans": "B",
         "course_id": 2, "choice_id": 2, "choice_text": "B"},
    ))

    response = client.get("/api/questions/5", headers=instructor_headers)

    data = response.json()["data"]
    assert data["correctAnswer"] == "B"
    assert data["choices"] == [{"id": 1, "text": "A"}, {"id": 2, "text": "B"}]


def test_question_not_found(client, gateway, instructor_headers):
    response = client.get("/api/questions/5", headers=instructor_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Question not found"


def test_questions_are_instructor_only(client, gateway, student_headers):
    response = client.get("/api/questions/5", headers=student_headers)

    assert response.status_code == 403
