from classroom_app.constants.classroom_constants import DEFAULT_FEEDBACK_QUESTIONS
from classroom_app.core.models import ErrorKind
from classroom_app.core.services.authoring import ClassroomAuthoring, QuestionDraft, QuizDraft
from classroom_app.storage.base import ConstraintViolation
from classroom_app.storage.memory import InMemoryStorage

from conftest import ALICE, TEACHER


def test_create_classroom_seeds_default_questions(classroom):
    assert len(classroom.code) == 6
    assert [q.text for q in classroom.sorted_feedback_questions()] == list(DEFAULT_FEEDBACK_QUESTIONS)
    assert [q.order for q in classroom.sorted_feedback_questions()] == [0, 1, 2, 3, 4]
    assert classroom.teacher_id == TEACHER
    assert classroom.teacher_name == "Ms. Frizzle"


def test_codes_are_unique_across_classrooms(manager):
    codes = [manager.create_classroom(TEACHER, f"Room {i}").value.code for i in range(25)]
    assert len(set(codes)) == len(codes)


def test_only_teachers_create_classrooms(manager):
    result = manager.create_classroom(ALICE, "Student room")
    assert result.error is ErrorKind.UNAUTHORIZED
    assert result.message == "Only teachers can create classrooms"


def test_classroom_name_required(manager):
    assert manager.create_classroom(TEACHER, "   ").error is ErrorKind.VALIDATION_ERROR


def test_code_collision_in_storage_is_retried():
    storage = InMemoryStorage()
    authoring = ClassroomAuthoring(storage)
    authoring.register_user(TEACHER, "teacher")
    calls = {"count": 0}
    original = storage.insert_classroom

    def flaky_insert(classroom):
        calls["count"] += 1
        if calls["count"] == 1:
            raise ConstraintViolation("classroom_code")
        original(classroom)

    storage.insert_classroom = flaky_insert
    result = authoring.create_classroom(TEACHER, "Retry room")
    assert result.success
    assert calls["count"] == 2


def test_code_space_exhausted_is_reported():
    storage = InMemoryStorage()
    authoring = ClassroomAuthoring(storage, code_retry_limit=3)
    authoring.register_user(TEACHER, "teacher")

    def always_taken(classroom):
        raise ConstraintViolation("classroom_code")

    storage.insert_classroom = always_taken
    result = authoring.create_classroom(TEACHER, "Unlucky room")
    assert not result.success
    assert result.error is ErrorKind.CODE_SPACE_EXHAUSTED


def test_add_and_remove_feedback_question(manager, classroom):
    added = manager.add_feedback_question(TEACHER, classroom.id, "Was the pace right?")
    assert added.success
    assert added.value.order == 5

    removed = manager.remove_feedback_question(TEACHER, classroom.id, added.value.id)
    assert removed.success
    questions = manager.get_classroom(classroom.id, TEACHER).value.feedback_questions
    assert added.value.id not in {q.id for q in questions}

    again = manager.remove_feedback_question(TEACHER, classroom.id, added.value.id)
    assert again.error is ErrorKind.NOT_FOUND


def test_order_continues_after_removal(manager, classroom):
    last = classroom.sorted_feedback_questions()[-1]
    manager.remove_feedback_question(TEACHER, classroom.id, classroom.sorted_feedback_questions()[0].id)
    added = manager.add_feedback_question(TEACHER, classroom.id, "Another question")
    assert added.value.order == last.order + 1


def test_only_owner_edits_questions(manager, classroom):
    assert manager.add_feedback_question(ALICE, classroom.id, "Hack?").error is ErrorKind.UNAUTHORIZED
    assert manager.add_feedback_question(TEACHER, "missing", "Q").error is ErrorKind.NOT_FOUND
    assert manager.add_feedback_question(TEACHER, classroom.id, " ").error is ErrorKind.VALIDATION_ERROR


def test_create_quiz(manager, classroom):
    draft = QuizDraft(
        title=" Waves ",
        questions=[
            QuestionDraft(text="Speed of sound?", options=["343 m/s", "3e8 m/s"], correct_answer="0"),
            QuestionDraft(text="Unit of frequency?", options=["Hz", "N", "J"], correct_answer=0),
        ],
        time_limit="20",
    )
    result = manager.create_quiz(TEACHER, classroom.id, draft)
    assert result.success
    quiz = result.value
    assert quiz.title == "Waves"
    assert quiz.time_limit == 20
    assert [q.order for q in quiz.questions] == [0, 1]
    assert quiz.questions[0].correct_answer == 0
    stored = manager.get_classroom(classroom.id, TEACHER).value.get_quiz(quiz.id)
    assert stored == quiz


def test_create_quiz_validation(manager, classroom):
    def attempt(**overrides):
        values = dict(
            title="Quiz",
            questions=[QuestionDraft(text="Q", options=["a", "b"], correct_answer=1)],
            time_limit=5,
        )
        values.update(overrides)
        return manager.create_quiz(TEACHER, classroom.id, QuizDraft(**values))

    assert attempt().success
    assert attempt(title="").error is ErrorKind.VALIDATION_ERROR
    assert attempt(questions=[]).error is ErrorKind.VALIDATION_ERROR
    assert attempt(time_limit=0).error is ErrorKind.VALIDATION_ERROR
    assert attempt(questions=[QuestionDraft(text="Q", options=["a"], correct_answer=0)]).error is ErrorKind.VALIDATION_ERROR
    assert attempt(questions=[QuestionDraft(text="Q", options=["a", "b"], correct_answer=2)]).error is ErrorKind.VALIDATION_ERROR
    assert attempt(questions=[QuestionDraft(text="Q", options=["a", " "], correct_answer=0)]).error is ErrorKind.VALIDATION_ERROR


def test_register_user_rules(manager):
    assert manager.register_user(TEACHER, "teacher").message == "User already exists"
    assert manager.register_user("not-an-email", "student").error is ErrorKind.VALIDATION_ERROR
    assert manager.register_user("x@school.test", "admin").error is ErrorKind.VALIDATION_ERROR
    carol = manager.register_user("Carol@School.test", "student")
    assert carol.value.email == "carol@school.test"
    assert carol.value.name == "carol"
