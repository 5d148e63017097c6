"""
Tutor Match Scoring

Deterministic 0-100 compatibility score between a student and a tutor for a
set of requested subjects. Six independently capped components:

    expertise       0-35   requested subjects vs tutor expertise/subjects
    rating          0-20   average rating / 5 * 20
    experience      0-15   tiered by completed sessions
    department      0-10   same department 10, same faculty 5
    learning_style  0-10   learning style vs teaching style keywords
    availability    0-10   2 points per overlapping weekly slot

No I/O and no side effects: the same inputs always give the same result.
"""
import math
from typing import Dict, List, Optional, Sequence

from scheduling_engine.schemas import MatchResult, StudentProfileRecord, TutorProfileRecord
from scheduling_engine.services.time_window import intervals_overlap

EXPERTISE_MAX = 35
RATING_MAX = 20
DEPARTMENT_MAX = 10
LEARNING_STYLE_MAX = 10
AVAILABILITY_MAX = 10

DEFAULT_EXPERTISE_MATCH = 0.3
LEARNING_STYLE_NEUTRAL = 5
LEARNING_STYLE_MISMATCH = 3
AVAILABILITY_NEUTRAL = 5
POINTS_PER_OVERLAPPING_SLOT = 2

# Student learning style -> teaching style keywords that suit it
LEARNING_STYLE_COMPATIBILITY: Dict[str, List[str]] = {
    "visual": ["visual", "practical", "interactive", "demonstration"],
    "auditory": ["verbal", "lecture", "discussion", "explanation"],
    "reading_writing": ["reading", "written", "structured", "note_based"],
    "kinesthetic": ["practical", "hands_on", "interactive", "project_based"],
}

REASON_STRONG_EXPERTISE = "Strong expertise match for the requested subjects"
REASON_RELATED_EXPERTISE = "Has related expertise"
REASON_TOP_RATED = "Very highly rated by other students"
REASON_WELL_RATED = "Well rated by other students"
REASON_VETERAN = "Very experienced tutor (100+ sessions)"
REASON_EXPERIENCED = "Extensive teaching experience"
REASON_SAME_DEPARTMENT = "Same department - familiar with your curriculum"
REASON_SAME_FACULTY = "Same faculty"
REASON_STYLE_MATCH = "Teaching style suits your learning style"
REASON_SCHEDULE_MATCH = "Flexible schedule with many matching time slots"
REASON_AVAILABLE = "Tutor is available to support you"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def expertise_match(tutor: TutorProfileRecord, requested_subjects: Sequence[str]) -> float:
    """
    Fraction (may exceed 1 before capping) of requested subjects the tutor
    covers. Exact matches count 1 and every substring match adds 0.5, so an
    exact match scores 1.5. Falls back to the tutor's plain subject list,
    then to a flat default when either side has no subject data.
    """
    subjects = [s.lower() for s in requested_subjects if s]
    expertise = [e.subject.lower() for e in tutor.expertise if e.subject]

    if subjects and expertise:
        exact = sum(1 for s in subjects if s in expertise)
        partial = sum(1 for s in subjects if any(e in s or s in e for e in expertise))
        return (exact + partial * 0.5) / len(subjects)

    tutor_subjects = [s.lower() for s in tutor.subjects if s]
    if subjects and tutor_subjects:
        covered = sum(1 for s in subjects if any(t in s or s in t for t in tutor_subjects))
        return covered / len(subjects)

    return DEFAULT_EXPERTISE_MATCH


def overlapping_slots(tutor: TutorProfileRecord, student: StudentProfileRecord) -> int:
    """Pairs of tutor/student weekly slots on the same day whose times overlap"""
    count = 0
    for tutor_slot in tutor.availability:
        for student_slot in student.schedule_preference:
            if tutor_slot.day_of_week == student_slot.day_of_week and intervals_overlap(
                tutor_slot.start_time, tutor_slot.end_time,
                student_slot.start_time, student_slot.end_time,
            ):
                count += 1
    return count


def score(
    student: Optional[StudentProfileRecord],
    tutor: Optional[TutorProfileRecord],
    requested_subjects: Sequence[str] = (),
) -> MatchResult:
    """Compute the compatibility score, breakdown and reasons"""
    if tutor is None:
        return MatchResult(total=0, breakdown={}, reasons=[])

    breakdown: Dict[str, int] = {}
    reasons: List[str] = []

    # 1. Expertise
    match = expertise_match(tutor, requested_subjects or ())
    breakdown["expertise"] = _round_half_up(min(1.0, match) * EXPERTISE_MAX)
    if match > 0.7:
        reasons.append(REASON_STRONG_EXPERTISE)
    elif match > 0.4:
        reasons.append(REASON_RELATED_EXPERTISE)

    # 2. Rating
    rating = min(max(tutor.average_rating or 0.0, 0.0), 5.0)
    breakdown["rating"] = _round_half_up(rating / 5 * RATING_MAX)
    if rating >= 4.5:
        reasons.append(REASON_TOP_RATED)
    elif rating >= 4.0:
        reasons.append(REASON_WELL_RATED)

    # 3. Experience
    sessions = tutor.completed_sessions or tutor.total_sessions or 0
    if sessions >= 100:
        breakdown["experience"] = 15
        reasons.append(REASON_VETERAN)
    elif sessions >= 50:
        breakdown["experience"] = 12
        reasons.append(REASON_EXPERIENCED)
    elif sessions >= 20:
        breakdown["experience"] = 8
    else:
        breakdown["experience"] = min(sessions, 5)

    # 4. Department / faculty
    breakdown["department"] = 0
    if student is not None and student.department and tutor.department:
        if student.department == tutor.department:
            breakdown["department"] = DEPARTMENT_MAX
            reasons.append(REASON_SAME_DEPARTMENT)
        elif student.faculty and student.faculty == tutor.faculty:
            breakdown["department"] = DEPARTMENT_MAX // 2
            reasons.append(REASON_SAME_FACULTY)

    # 5. Learning style
    if student is not None and student.learning_style and tutor.teaching_style:
        compatible = LEARNING_STYLE_COMPATIBILITY.get(student.learning_style.lower(), [])
        teaching_style = tutor.teaching_style.lower()
        if any(keyword in teaching_style for keyword in compatible):
            breakdown["learning_style"] = LEARNING_STYLE_MAX
            reasons.append(REASON_STYLE_MATCH)
        else:
            breakdown["learning_style"] = LEARNING_STYLE_MISMATCH
    else:
        breakdown["learning_style"] = LEARNING_STYLE_NEUTRAL

    # 6. Schedule overlap
    if student is not None and student.schedule_preference and tutor.availability:
        slots = overlapping_slots(tutor, student)
        breakdown["availability"] = min(AVAILABILITY_MAX, slots * POINTS_PER_OVERLAPPING_SLOT)
        if slots >= 3:
            reasons.append(REASON_SCHEDULE_MATCH)
    else:
        breakdown["availability"] = AVAILABILITY_NEUTRAL

    total = min(100, sum(breakdown.values()))
    if total > 30 and not reasons:
        reasons.append(REASON_AVAILABLE)

    return MatchResult(total=total, breakdown=breakdown, reasons=reasons)


def rank_tutors(
    student: Optional[StudentProfileRecord],
    tutors: Sequence[TutorProfileRecord],
    requested_subjects: Sequence[str] = (),
    limit: int = 10,
) -> List[tuple]:
    """(tutor, MatchResult) pairs, best first, ties broken by tutor id"""
    scored = [(tutor, score(student, tutor, requested_subjects)) for tutor in tutors]
    scored.sort(key=lambda pair: (-pair[1].total, pair[0].id))
    return scored[:limit]
