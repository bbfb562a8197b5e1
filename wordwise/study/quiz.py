"""
Test Generator.

Builds quizzes from the words a learner has recently reviewed and grades
submitted answers. Every graded answer is fed back into the scheduling
engine (quality 4 if correct, 2 if not), so tests move words through the
same state machine as regular study.

Multiple-choice questions get up to ``distractor_count`` wrong options,
same-topic first, backfilled from any topic. Candidates are sampled from
per-topic id lists that are cached with the vocabulary TTL and read at most
once per quiz. Options are shuffled and then numbered 1..n by position,
and the correct option's id is recorded on the question.
"""

from __future__ import annotations

import random
from enum import Enum
from typing import TypeVar

from loguru import logger

from config import get_settings
from wordwise.cache import CacheGateway
from wordwise.core.status import CORRECT_ANSWER_QUALITY, INCORRECT_ANSWER_QUALITY
from wordwise.core.types import (
    Answer,
    AnswerMode,
    LearningRecord,
    Question,
    QuestionMode,
    QuestionOption,
    RecordFilter,
    RecordOrder,
    ScoreReport,
    VocabularyItem,
    percent,
)
from wordwise.db.repository import LearningRecordStore
from wordwise.exceptions import InvalidArgument, StorageError
from wordwise.study.scheduler import SchedulingEngine, require_positive

E = TypeVar("E", bound=Enum)

POOL_MULTIPLIER = 2


def normalize_answer(text: str | None) -> str:
    """Case-insensitive, whitespace-trimmed comparison form."""
    return (text or "").strip().lower()


def _coerce_mode(enum_cls: type[E], value: E | str, name: str) -> E:
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidArgument(f"{name} must be one of {allowed}, got {value!r}") from e


class TestGenerator:
    """
    Quiz builder and grader.

    Args:
        store: Learning record store
        engine: Scheduling engine that receives graded answers
        cache: Cache gateway for distractor id lists (defaults to the engine's)
        distractor_count: Wrong options per multiple-choice question
        ttls: TTL policy (defaults to settings)
        rng: Random source for mode coin flips, distractors and option order
    """

    # Not a pytest test class
    __test__ = False

    def __init__(
        self,
        store: LearningRecordStore | None = None,
        engine: SchedulingEngine | None = None,
        cache: CacheGateway | None = None,
        distractor_count: int | None = None,
        ttls: dict[str, int] | None = None,
        rng: random.Random | None = None,
    ):
        self.rng = rng or random.Random()
        self.store = store or LearningRecordStore()
        self.engine = engine or SchedulingEngine(store=self.store, cache=cache, rng=self.rng)
        self.cache = cache or self.engine.cache
        self.ttls = ttls or get_settings().get_cache_ttls()
        self.distractor_count = (
            distractor_count if distractor_count is not None else get_settings().distractor_count
        )

    # ========================================
    # Generation
    # ========================================

    def generate_test(
        self,
        user_id: int,
        count: int = 10,
        question_mode: QuestionMode | str = QuestionMode.MIXED,
        answer_mode: AnswerMode | str = AnswerMode.CHOICE,
        topic_id: int | None = None,
    ) -> list[Question]:
        """
        Build up to ``count`` questions from the user's recently reviewed words.

        Args:
            user_id: Learner
            count: Questions wanted (> 0)
            question_mode: en2native, native2en or mixed (coin flip per question)
            answer_mode: choice, text or mixed (coin flip per question)
            topic_id: Only test words of this topic

        Returns:
            Questions (empty when the user has not studied anything yet)
        """
        require_positive("count", count)
        question_mode = _coerce_mode(QuestionMode, question_mode, "question_mode")
        answer_mode = _coerce_mode(AnswerMode, answer_mode, "answer_mode")

        pool = self.store.query_learning_records(
            RecordFilter(user_id=user_id, topic_id=topic_id),
            count * POOL_MULTIPLIER,
            RecordOrder.LAST_REVIEWED_DESC,
        )
        if not pool:
            logger.debug(f"No studied words to test for user {user_id}")
            return []

        id_lists: dict[int | None, list[int]] = {}
        questions = []
        for record in pool[:count]:
            questions.append(
                self._build_question(
                    record,
                    self._resolve_question_mode(question_mode),
                    self._resolve_answer_mode(answer_mode),
                    id_lists,
                )
            )

        logger.info(f"Generated {len(questions)} questions for user {user_id}")
        return questions

    def _resolve_question_mode(self, mode: QuestionMode) -> QuestionMode:
        if mode is QuestionMode.MIXED:
            return self.rng.choice([QuestionMode.EN_TO_NATIVE, QuestionMode.NATIVE_TO_EN])
        return mode

    def _resolve_answer_mode(self, mode: AnswerMode) -> AnswerMode:
        if mode is AnswerMode.MIXED:
            return self.rng.choice([AnswerMode.CHOICE, AnswerMode.TEXT])
        return mode

    def _build_question(
        self,
        record: LearningRecord,
        question_mode: QuestionMode,
        answer_mode: AnswerMode,
        id_lists: dict[int | None, list[int]],
    ) -> Question:
        word = record.vocabulary
        forward = question_mode is QuestionMode.EN_TO_NATIVE
        if forward:
            prompt = f'What does "{word.word}" mean?'
            correct_text = word.meaning
        else:
            prompt = f'Which English word means "{word.meaning}"?'
            correct_text = word.word

        question = Question(
            vocabulary_id=word.id,
            question_mode=question_mode,
            answer_mode=answer_mode,
            prompt=prompt,
            word=word.word if forward else None,
            meaning=None if forward else word.meaning,
            pronunciation=word.pronunciation,
            topic_id=word.topic_id,
            topic_name=word.topic_name,
            hints=self._hints(word, correct_text),
        )

        if answer_mode is AnswerMode.TEXT:
            question.correct_answer = normalize_answer(correct_text)
            return question

        texts = [correct_text]
        distractors = self._pick_distractors(word, correct_text, forward, id_lists)
        texts.extend(self._option_text(d, forward) for d in distractors)
        self.rng.shuffle(texts)

        question.options = [QuestionOption(id=i, text=t) for i, t in enumerate(texts, start=1)]
        question.correct_option_id = texts.index(correct_text) + 1
        return question

    @staticmethod
    def _option_text(item: VocabularyItem, forward: bool) -> str:
        return item.meaning if forward else item.word

    @staticmethod
    def _hints(word: VocabularyItem, answer: str) -> dict[str, str]:
        hints = {"first_letter": answer[:1], "length": str(len(answer))}
        if word.part_of_speech:
            hints["part_of_speech"] = word.part_of_speech
        if word.example:
            hints["example"] = word.example
        return hints

    def _pick_distractors(
        self,
        word: VocabularyItem,
        correct_text: str,
        forward: bool,
        id_lists: dict[int | None, list[int]],
    ) -> list[VocabularyItem]:
        """
        Draw wrong options: same topic first, then any topic.

        Candidates whose option text equals the correct one are skipped so
        exactly one option is right.
        """
        wanted = self.distractor_count
        if wanted <= 0:
            return []

        chosen: list[VocabularyItem] = []
        seen_texts = {normalize_answer(correct_text)}
        excluded = {word.id}

        def take(topic_id: int | None, count: int) -> None:
            candidates = [i for i in self._candidate_ids(topic_id, id_lists) if i not in excluded]
            picked = self.rng.sample(candidates, min(count, len(candidates)))
            for item in self.store.get_vocabulary_items(picked):
                excluded.add(item.id)
                text = normalize_answer(self._option_text(item, forward))
                if len(chosen) < wanted and text not in seen_texts:
                    seen_texts.add(text)
                    chosen.append(item)

        # Over-draw so duplicate texts do not leave the question short
        if word.topic_id is not None:
            take(word.topic_id, wanted * 2)
        if len(chosen) < wanted:
            take(None, (wanted - len(chosen)) * 2)
        return chosen

    def _candidate_ids(self, topic_id: int | None, id_lists: dict[int | None, list[int]]) -> list[int]:
        """Vocabulary ids of one topic (None: all topics), read once per quiz."""
        if topic_id not in id_lists:
            id_lists[topic_id] = self.cache.cached_json(
                self.cache.keys.vocabulary_ids(topic_id),
                self.ttls["vocabulary"],
                lambda: self.store.vocabulary_ids(topic_id),
                load=lambda ids: [int(i) for i in ids],
            )
        return id_lists[topic_id]

    # ========================================
    # Grading
    # ========================================

    def submit_answers(self, user_id: int, answers: list[Answer]) -> ScoreReport:
        """
        Grade a submitted test and feed every answer into the scheduler.

        Multiple-choice answers match on the recorded option id; text answers
        match case-insensitively after trimming.

        Returns:
            total / correct / percentage (all 0 for an empty submission)

        Raises:
            InvalidArgument: an answer is mixed-mode, has a negative response
                time or names an unknown word; nothing is written in that case
        """
        graded = [(answer, self.is_correct(answer)) for answer in answers]
        if not graded:
            return ScoreReport(total=0, correct=0, percentage=0)
        self._check_answers(answers)

        correct = 0
        for answer, ok in graded:
            correct += int(ok)
            quality = CORRECT_ANSWER_QUALITY if ok else INCORRECT_ANSWER_QUALITY
            self.engine.process_study_event(
                user_id, answer.vocabulary_id, quality, answer.response_time_ms or 0
            )

        report = ScoreReport(total=len(graded), correct=correct, percentage=percent(correct, len(graded)))
        try:
            self.store.record_test_score(user_id, report.percentage, self.engine.clock())
        except StorageError as e:
            logger.warning(f"Test score not recorded for user {user_id}: {e}")
        self.engine.cache.invalidate_user(user_id)

        logger.info(f"User {user_id} scored {report.correct}/{report.total} ({report.percentage}%)")
        return report

    def _check_answers(self, answers: list[Answer]) -> None:
        for answer in answers:
            if answer.response_time_ms is not None and answer.response_time_ms < 0:
                raise InvalidArgument(f"response_time_ms must be >= 0, got {answer.response_time_ms}")
        for vocabulary_id in dict.fromkeys(a.vocabulary_id for a in answers):
            if self.store.get_vocabulary(vocabulary_id) is None:
                raise InvalidArgument(f"Unknown vocabulary id {vocabulary_id}")

    @staticmethod
    def is_correct(answer: Answer) -> bool:
        mode = _coerce_mode(AnswerMode, answer.answer_mode, "answer_mode")
        if mode is AnswerMode.CHOICE:
            return answer.selected_option_id is not None and answer.selected_option_id == answer.correct_option_id
        if mode is AnswerMode.TEXT:
            if answer.correct_answer is None:
                return False
            return normalize_answer(answer.text_answer) == normalize_answer(answer.correct_answer)
        raise InvalidArgument("An answer must be either choice or text, not mixed")
