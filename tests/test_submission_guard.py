from threading import Barrier, Thread

from classroom_app.core.classroom_manager import ClassroomManager
from classroom_app.core.models import ErrorKind
from classroom_app.core.services.submission_guard import can_submit_feedback, can_submit_quiz_attempt
from classroom_app.storage.memory import InMemoryStorage

from conftest import ALICE, BOB, TEACHER


def _ratings(classroom, value=4):
    return {question.id: value for question in classroom.feedback_questions}


def test_feedback_once_per_student(manager, enrolled):
    assert can_submit_feedback(enrolled, ALICE)
    first = manager.submit_feedback(enrolled.id, ALICE, _ratings(enrolled), "Great class")
    assert first.success
    assert first.value.comment == "Great class"
    assert manager.has_submitted_feedback(enrolled.id, ALICE)

    second = manager.submit_feedback(enrolled.id, ALICE, _ratings(enrolled, 2))
    assert second.error is ErrorKind.ALREADY_SUBMITTED
    assert second.message == "You have already submitted feedback for this classroom"

    stored = manager.get_classroom(enrolled.id, TEACHER).value
    assert len(stored.feedbacks) == 1
    assert not can_submit_feedback(stored, ALICE)
    assert can_submit_feedback(stored, BOB)


def test_feedback_round_trip_normalizes_string_ratings(manager, enrolled):
    questions = enrolled.sorted_feedback_questions()
    answers = {questions[0].id: "3", questions[1].id: 3, questions[2].id: " 5 "}
    result = manager.submit_feedback(enrolled.id, ALICE, answers, None)
    assert result.success
    stored = manager.get_classroom(enrolled.id, TEACHER).value.feedbacks[0]
    assert stored.answers == {questions[0].id: 3, questions[1].id: 3, questions[2].id: 5}
    assert all(type(value) is int for value in stored.answers.values())
    assert stored.comment == ""
    assert stored.student_id == ALICE


def test_feedback_validation(manager, enrolled):
    question_id = enrolled.feedback_questions[0].id
    assert manager.submit_feedback(enrolled.id, ALICE, {}).error is ErrorKind.VALIDATION_ERROR
    assert manager.submit_feedback(enrolled.id, ALICE, {question_id: 6}).error is ErrorKind.VALIDATION_ERROR
    assert manager.submit_feedback(enrolled.id, ALICE, {question_id: 0}).error is ErrorKind.VALIDATION_ERROR
    assert manager.submit_feedback(enrolled.id, ALICE, {question_id: "great"}).error is ErrorKind.VALIDATION_ERROR
    assert manager.submit_feedback(enrolled.id, ALICE, {"nope": 3}).error is ErrorKind.VALIDATION_ERROR
    # Rejected submissions leave the slot open.
    assert manager.submit_feedback(enrolled.id, ALICE, {question_id: 5}).success


def test_feedback_requires_enrollment_and_classroom(manager, classroom):
    assert manager.submit_feedback(classroom.id, ALICE, {"q": 3}).error is ErrorKind.UNAUTHORIZED
    assert manager.submit_feedback("missing", ALICE, {"q": 3}).error is ErrorKind.NOT_FOUND


def test_quiz_attempt_scored_and_recorded(manager, enrolled, quiz):
    result = manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [1, "0", 2])
    assert result.success
    assert result.message == "Quiz submitted! You scored 2/3"
    attempt = result.value
    assert (attempt.score, attempt.total_questions) == (2, 3)

    stored = manager.get_classroom(enrolled.id, TEACHER).value.quiz_attempts
    assert len(stored) == 1
    assert stored[0].answers == [1, 0, 2]
    assert stored[0].student_id == ALICE


def test_quiz_attempt_once_per_student(manager, enrolled, quiz):
    assert manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [1, 0, 3]).success
    again = manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [1, 0, 3])
    assert again.error is ErrorKind.ALREADY_SUBMITTED
    assert again.message == "You have already attempted this quiz"
    assert manager.has_attempted_quiz(enrolled.id, quiz.id, ALICE)
    assert manager.submit_quiz_attempt(enrolled.id, quiz.id, BOB, [0, 0, 0]).success


def test_partial_attempt_is_padded_with_unanswered(manager, enrolled, quiz):
    result = manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [1])
    assert result.success
    assert result.value.answers == [1, -1, -1]
    assert result.value.score == 1


def test_quiz_attempt_validation(manager, enrolled, quiz):
    assert manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [1, 0, 3, 0]).error is ErrorKind.VALIDATION_ERROR
    assert manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [4, 0, 3]).error is ErrorKind.VALIDATION_ERROR
    assert manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [-2, 0, 3]).error is ErrorKind.VALIDATION_ERROR
    assert manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, ["b", 0, 3]).error is ErrorKind.VALIDATION_ERROR
    assert manager.submit_quiz_attempt(enrolled.id, "missing", ALICE, [1]).error is ErrorKind.NOT_FOUND
    assert manager.submit_quiz_attempt(enrolled.id, quiz.id, "carol@school.test", [1]).error is ErrorKind.UNAUTHORIZED


def test_storage_constraint_is_reported_as_already_submitted(manager, enrolled, quiz):
    storage = manager._storage
    stale = storage.find_classroom_by_id(enrolled.id)
    assert manager.submit_feedback(enrolled.id, ALICE, _ratings(enrolled)).success
    assert manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [1, 0, 3]).success

    # Serve a snapshot taken before the submissions so only the constraint can reject.
    original = storage.find_classroom_by_id
    storage.find_classroom_by_id = lambda classroom_id: stale
    try:
        assert can_submit_quiz_attempt(stale, quiz.id, ALICE)
        feedback = manager.submit_feedback(enrolled.id, ALICE, _ratings(enrolled))
        attempt = manager.submit_quiz_attempt(enrolled.id, quiz.id, ALICE, [1, 0, 3])
    finally:
        storage.find_classroom_by_id = original

    assert feedback.error is ErrorKind.ALREADY_SUBMITTED
    assert attempt.error is ErrorKind.ALREADY_SUBMITTED
    stored = storage.find_classroom_by_id(enrolled.id)
    assert len(stored.feedbacks) == 1
    assert len(stored.quiz_attempts) == 1


def test_concurrent_feedback_stores_exactly_one():
    manager = ClassroomManager(InMemoryStorage())
    manager.register_user(TEACHER, "teacher")
    manager.register_user(ALICE, "student")
    classroom = manager.create_classroom(TEACHER, "Race room").value
    manager.join_classroom(classroom.code, ALICE)
    ratings = _ratings(classroom, 5)

    barrier = Barrier(8)
    results = []

    def submit():
        barrier.wait()
        results.append(manager.submit_feedback(classroom.id, ALICE, ratings))

    threads = [Thread(target=submit) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(result.success for result in results) == 1
    assert all(result.error is ErrorKind.ALREADY_SUBMITTED for result in results if not result.success)
    assert len(manager.get_classroom(classroom.id, TEACHER).value.feedbacks) == 1
