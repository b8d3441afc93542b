"""Prediction discrepancy analysis.

Compares a prediction an evaluator filed before testing a target against the
score and grade the evaluation later produced. analyze_discrepancy() is a pure
function; persisting the result and feeding it to the reputation engine is
done by services.evaluation.

Accuracy bands on absolute_error (half-open, lower bound inclusive):
    [0, 5) excellent, [5, 10) good, [10, 20) fair, [20, ...) poor
"""

from dataclasses import dataclass, field

from trustradar.models.evaluation import AccuracyCategory

# (exclusive upper bound on absolute_error, category), checked in order
ACCURACY_BANDS: list[tuple[int, AccuracyCategory]] = [
    (5, AccuracyCategory.excellent),
    (10, AccuracyCategory.good),
    (20, AccuracyCategory.fair),
]

SCORE_MIN = 0
SCORE_MAX = 100


class DiscrepancyInputError(ValueError):
    """Raised when a prediction or outcome cannot be compared.

    Out-of-range scores or missing grades are rejected, never coerced.
    """


@dataclass(frozen=True)
class DiscrepancyResult:
    predicted_score: int
    actual_score: int
    score_difference: int
    absolute_error: int
    predicted_grade: str
    actual_grade: str
    grade_match: bool
    accuracy_category: AccuracyCategory
    overestimated: bool


@dataclass(frozen=True)
class LearningInsights:
    """Feedback returned to an evaluator alongside a discrepancy."""

    evaluator_performance: str
    suggested_adjustments: list[str] = field(default_factory=list)


def categorize_accuracy(absolute_error: float) -> AccuracyCategory:
    for upper_bound, category in ACCURACY_BANDS:
        if absolute_error < upper_bound:
            return category
    return AccuracyCategory.poor


def _check_score(name: str, value: int) -> None:
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise DiscrepancyInputError(
            f"{name} must be between {SCORE_MIN} and {SCORE_MAX}, got {value}"
        )


def analyze_discrepancy(
    predicted_score: int,
    predicted_grade: str,
    actual_score: int,
    actual_grade: str,
) -> DiscrepancyResult:
    """Compare a prediction against the realized outcome.

    Args:
        predicted_score: Score the evaluator forecast (0-100).
        predicted_grade: Grade the evaluator forecast.
        actual_score: Score the evaluation produced (0-100).
        actual_grade: Grade the evaluation produced.

    Returns:
        DiscrepancyResult with score_difference = actual - predicted.

    Raises:
        DiscrepancyInputError: A score is outside [0, 100] or a grade is empty.
    """
    _check_score("predicted_score", predicted_score)
    _check_score("actual_score", actual_score)
    if not predicted_grade or not actual_grade:
        raise DiscrepancyInputError("predicted_grade and actual_grade are required")

    difference = actual_score - predicted_score
    absolute_error = abs(difference)

    return DiscrepancyResult(
        predicted_score=predicted_score,
        actual_score=actual_score,
        score_difference=difference,
        absolute_error=absolute_error,
        predicted_grade=predicted_grade,
        actual_grade=actual_grade,
        grade_match=predicted_grade == actual_grade,
        accuracy_category=categorize_accuracy(absolute_error),
        overestimated=predicted_score > actual_score,
    )


_INSIGHTS: dict[AccuracyCategory, LearningInsights] = {
    AccuracyCategory.excellent: LearningInsights(
        "Excellent prediction accuracy! Your model is well-calibrated.",
    ),
    AccuracyCategory.good: LearningInsights(
        "Good prediction accuracy. Minor adjustments may improve performance.",
        ["Consider adjusting test weights based on discrepancy patterns"],
    ),
    AccuracyCategory.fair: LearningInsights(
        "Fair prediction accuracy. Review prediction model for improvements.",
        [
            "Analyze which test categories show highest discrepancy",
            "Increase weight on consistently underestimated categories",
            "Gather more historical data for better predictions",
        ],
    ),
    AccuracyCategory.poor: LearningInsights(
        "Poor prediction accuracy. Significant model adjustments needed.",
        [
            "Review prediction basis - consider using more historical data",
            "Recalibrate confidence thresholds",
            "Analyze test discrepancies for systematic bias",
            "Consider adjusting baseline assumptions",
        ],
    ),
}


def learning_insights(category: AccuracyCategory) -> LearningInsights:
    return _INSIGHTS[category]
