"""Probe question generation for visibility runs.

Use explicit imports:
    from worker.questions.templates import QuestionType, DIFFICULTY_WEIGHTS, QUESTION_MIX
    from worker.questions.generator import QuestionGenerator, Question, generate_questions
"""

__all__ = [
    # Templates
    "QuestionType",
    "QuestionTemplate",
    "DIFFICULTY_WEIGHTS",
    "QUESTION_MIX",
    "QUESTION_TEMPLATES",
    "get_templates_by_type",
    # Generator
    "QuestionGenerator",
    "GeneratorConfig",
    "Question",
    "allocate_question_counts",
    "generate_questions",
]
