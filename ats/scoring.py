"""
ATS Scoring - Candidate Matching and Ranking

This module implements skill-based candidate matching:
- Skill: value type with an explicit normalized comparison key
- SkillMatchScorer: scores one candidate against one job's skill lists
- CandidateRanker: scores a candidate pool and orders it by score
- SkillGapAnalyzer: critical/minor gaps, strengths and recommendations
- ScoringService: loads jobs and profiles, ranks, filters and caches

Scores are explainable: every match records which candidate skill
satisfied which job skill and whether it was an exact or partial match.
Match results are projections and are never persisted.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Iterable, Sequence, Tuple
from enum import Enum
import hashlib
import json
import logging
import math

from django.core.cache import cache as default_cache

logger = logging.getLogger(__name__)


# ==================== SCORING ENUMS AND DATA CLASSES ====================

REQUIRED_WEIGHT = 0.7
PREFERRED_WEIGHT = 0.3


class Proficiency(Enum):
    """Self-reported or extracted skill proficiency."""
    NOVICE = "novice"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


class FitTier(Enum):
    """Coarse bucket derived from a match score."""
    EXCELLENT = "excellent"  # 80-100
    GOOD = "good"            # 60-79
    FAIR = "fair"            # 40-59
    POOR = "poor"            # 0-39


def fit_tier_for(score: int) -> FitTier:
    """Get fit tier for a score."""
    if score >= 80:
        return FitTier.EXCELLENT
    elif score >= 60:
        return FitTier.GOOD
    elif score >= 40:
        return FitTier.FAIR
    return FitTier.POOR


def normalize_skill_name(name: str) -> str:
    """Comparison key for a skill name: trimmed and lower-cased."""
    return (name or '').strip().lower()


@dataclass(frozen=True)
class Skill:
    """A skill as listed on a profile or a job posting."""
    name: str
    proficiency: Optional[Proficiency] = None
    category: Optional[str] = None
    required: Optional[bool] = None

    @property
    def key(self) -> str:
        return normalize_skill_name(self.name)

    @classmethod
    def from_value(cls, value: Any) -> 'Skill':
        """
        Build a Skill from a Skill, a plain name, or a stored dict.

        Unknown proficiency values are dropped rather than rejected, since
        skill data comes from free-text extraction.
        """
        if isinstance(value, Skill):
            return value
        if isinstance(value, str):
            return cls(name=value)

        proficiency = value.get('proficiency')
        try:
            proficiency = Proficiency(proficiency) if proficiency else None
        except ValueError:
            logger.debug(f"Ignoring unknown proficiency '{proficiency}' for skill {value.get('name')}")
            proficiency = None

        name = value.get('name')
        return cls(
            name=name if isinstance(name, str) else '',
            proficiency=proficiency,
            category=value.get('category'),
            required=value.get('required'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {'name': self.name}
        if self.proficiency is not None:
            data['proficiency'] = self.proficiency.value
        if self.category is not None:
            data['category'] = self.category
        if self.required is not None:
            data['required'] = self.required
        return data


def parse_skills(values: Optional[Iterable[Any]]) -> List[Skill]:
    """Convert stored skill data to Skills, skipping entries without a name."""
    skills = []
    for value in values or []:
        if not isinstance(value, (Skill, str, dict)):
            logger.debug(f"Skipping malformed skill entry {value!r}")
            continue
        skill = Skill.from_value(value)
        if skill.key:
            skills.append(skill)
    return skills


@dataclass(frozen=True)
class JobRequirement:
    """Skill requirements of one job, fixed for a scoring pass."""
    required_skills: Tuple[Skill, ...] = ()
    preferred_skills: Tuple[Skill, ...] = ()
    job_id: Optional[str] = None

    @classmethod
    def from_job(cls, job) -> 'JobRequirement':
        return cls(
            required_skills=tuple(parse_skills(job.required_skills)),
            preferred_skills=tuple(parse_skills(job.preferred_skills)),
            job_id=str(job.id),
        )


@dataclass(frozen=True)
class SkillMatch:
    """One job skill and the candidate skill that satisfied it."""
    job_skill: Skill
    candidate_skill: Skill
    exact: bool


@dataclass
class MatchResult:
    """Match of one candidate against one job."""
    score: int
    matching_skills: List[Skill]
    skill_gaps: List[Skill]
    fit_tier: FitTier
    matches: List[SkillMatch] = field(default_factory=list)
    required_score: float = 0.0
    preferred_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'score': self.score,
            'fit_tier': self.fit_tier.value,
            'matching_skills': [s.to_dict() for s in self.matching_skills],
            'skill_gaps': [s.to_dict() for s in self.skill_gaps],
            'matches': [
                {
                    'job_skill': m.job_skill.name,
                    'candidate_skill': m.candidate_skill.name,
                    'match_type': 'exact' if m.exact else 'partial',
                }
                for m in self.matches
            ],
            'required_score': round(self.required_score, 2),
            'preferred_score': round(self.preferred_score, 2),
        }


@dataclass
class RankedCandidate:
    """A candidate paired with its match result."""
    candidate: Any
    result: MatchResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            'candidate_id': str(self.candidate.id),
            'candidate_name': getattr(self.candidate, 'name', ''),
            **self.result.to_dict(),
        }


@dataclass
class SkillGapAnalysis:
    """Skill gaps and strengths of one candidate for one job."""
    critical_gaps: List[Skill]
    minor_gaps: List[Skill]
    strengths: List[Skill]
    recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'critical_gaps': [s.to_dict() for s in self.critical_gaps],
            'minor_gaps': [s.to_dict() for s in self.minor_gaps],
            'strengths': [s.to_dict() for s in self.strengths],
            'recommendations': self.recommendations,
        }


def round_half_up(value: float) -> int:
    # round() rounds halves to even; scores round .5 upward
    return int(math.floor(round(value, 6) + 0.5))


# ==================== SKILL MATCH SCORER ====================

class SkillMatchScorer:
    """
    Evaluates how well candidate skills match job requirements.

    Each job skill is matched by exact normalized name first. Failing
    that, the first candidate skill whose name contains the job skill (or
    is contained by it) wins. Containment is approximate: "java" matches
    "javascript". There is no synonym table, so "js" does not match
    "javascript".
    """

    def __init__(
        self,
        required_weight: float = REQUIRED_WEIGHT,
        preferred_weight: float = PREFERRED_WEIGHT,
    ):
        self.required_weight = required_weight
        self.preferred_weight = preferred_weight

    def match(
        self,
        candidate_skills: Sequence[Any],
        required_skills: Sequence[Any],
        preferred_skills: Sequence[Any],
    ) -> MatchResult:
        """
        Score a candidate's skills against required and preferred skills.

        Empty required skills score 100 on the required side, empty
        preferred skills score 0 on the preferred side.
        """
        candidate_skills = parse_skills(candidate_skills)
        required_skills = parse_skills(required_skills)
        preferred_skills = parse_skills(preferred_skills)

        lookup = self.build_lookup(candidate_skills)

        required_matches, skill_gaps = self._match_all(lookup, required_skills)
        preferred_matches, _ = self._match_all(lookup, preferred_skills)

        required_score = (
            len(required_matches) / len(required_skills) * 100
            if required_skills else 100.0
        )
        preferred_score = (
            len(preferred_matches) / len(preferred_skills) * 100
            if preferred_skills else 0.0
        )

        combined = (
            required_score * self.required_weight +
            preferred_score * self.preferred_weight
        )
        score = max(0, min(100, round_half_up(combined)))

        matches = required_matches + preferred_matches
        return MatchResult(
            score=score,
            matching_skills=[m.job_skill for m in matches],
            skill_gaps=skill_gaps,
            fit_tier=fit_tier_for(score),
            matches=matches,
            required_score=required_score,
            preferred_score=preferred_score,
        )

    @staticmethod
    def build_lookup(candidate_skills: List[Skill]) -> Dict[str, Skill]:
        # Insertion order is the candidate's list order
        return {skill.key: skill for skill in candidate_skills}

    def find_match(self, lookup: Dict[str, Skill], job_skill: Skill) -> Optional[SkillMatch]:
        """Find the candidate skill satisfying ``job_skill``, if any."""
        key = job_skill.key
        if key in lookup:
            return SkillMatch(job_skill=job_skill, candidate_skill=lookup[key], exact=True)

        for candidate_key, candidate_skill in lookup.items():
            if key in candidate_key or candidate_key in key:
                return SkillMatch(job_skill=job_skill, candidate_skill=candidate_skill, exact=False)

        return None

    def _match_all(
        self,
        lookup: Dict[str, Skill],
        job_skills: List[Skill],
    ) -> Tuple[List[SkillMatch], List[Skill]]:
        matches = []
        missing = []
        for job_skill in job_skills:
            found = self.find_match(lookup, job_skill)
            if found is None:
                missing.append(job_skill)
            else:
                matches.append(found)
        return matches, missing


# ==================== CANDIDATE RANKER ====================

class CandidateRanker:
    """
    Applies the scorer to a candidate pool.

    Candidates are any objects with ``id`` and ``skills``. Sorting is
    stable, so candidates with equal scores keep their input order.
    """

    def __init__(self, scorer: SkillMatchScorer = None):
        self.scorer = scorer or SkillMatchScorer()

    def score(self, candidate, job: JobRequirement) -> MatchResult:
        return self.scorer.match(candidate.skills, job.required_skills, job.preferred_skills)

    def rank(self, candidates: Iterable[Any], job: JobRequirement, scorer_fn=None) -> List[RankedCandidate]:
        """
        Score every candidate and sort by score descending.

        Args:
            candidates: Candidate pool
            job: Requirements to score against
            scorer_fn: Optional replacement for ``self.score`` (used to
                plug in cached scoring)
        """
        scorer_fn = scorer_fn or self.score
        ranked = [
            RankedCandidate(candidate=candidate, result=scorer_fn(candidate, job))
            for candidate in candidates
        ]
        return sorted(ranked, key=lambda r: r.result.score, reverse=True)


# ==================== SKILL GAP ANALYZER ====================

class SkillGapAnalyzer:
    """Explains what a candidate lacks for a job and what they should highlight."""

    max_highlighted_strengths = 3
    max_suggested_preferred = 3

    def __init__(self, scorer: SkillMatchScorer = None):
        self.scorer = scorer or SkillMatchScorer()

    def analyze(self, candidate_skills: Sequence[Any], job: JobRequirement) -> SkillGapAnalysis:
        candidate_skills = parse_skills(candidate_skills)
        lookup = self.scorer.build_lookup(candidate_skills)

        critical_gaps = [
            skill for skill in job.required_skills
            if self.scorer.find_match(lookup, skill) is None
        ]
        minor_gaps = [
            skill for skill in job.preferred_skills
            if self.scorer.find_match(lookup, skill) is None
        ]
        strengths = [
            skill for skill in candidate_skills
            if skill.proficiency == Proficiency.EXPERT
        ]

        return SkillGapAnalysis(
            critical_gaps=critical_gaps,
            minor_gaps=minor_gaps,
            strengths=strengths,
            recommendations=self._generate_recommendations(critical_gaps, minor_gaps, strengths),
        )

    def _generate_recommendations(
        self,
        critical_gaps: List[Skill],
        minor_gaps: List[Skill],
        strengths: List[Skill],
    ) -> List[str]:
        recommendations = []

        if critical_gaps:
            names = ', '.join(s.name for s in critical_gaps)
            recommendations.append(f"Focus on developing these critical skills: {names}")

        if minor_gaps and len(minor_gaps) <= self.max_suggested_preferred:
            names = ', '.join(s.name for s in minor_gaps)
            recommendations.append(f"Consider learning these preferred skills to stand out: {names}")

        if strengths:
            names = ', '.join(s.name for s in strengths[:self.max_highlighted_strengths])
            recommendations.append(f"Highlight your strong skills: {names}")

        if not critical_gaps and not minor_gaps:
            recommendations.append("Excellent match! You meet all the requirements for this position.")

        return recommendations


# ==================== SCORING SERVICE ====================

class ScoringService:
    """
    Service class for candidate scoring operations.

    Provides:
    - Ranking every candidate for a job, with filtering and pagination
    - Skill gap analysis for one candidate and job
    - Per-pair result caching keyed on the skill data itself

    Args:
        profile_store: Provides get_job, get_candidate and all_candidates
        cache: Django cache backend (defaults to the default cache)
        cache_timeout: Seconds a cached match result stays valid
    """

    cache_prefix = 'ats:match'

    def __init__(self, profile_store, cache=None, cache_timeout: int = 600, ranker: CandidateRanker = None):
        self.profile_store = profile_store
        self.cache = cache if cache is not None else default_cache
        self.cache_timeout = cache_timeout
        self.ranker = ranker or CandidateRanker()
        self.gap_analyzer = SkillGapAnalyzer(self.ranker.scorer)

    def rank_candidates(
        self,
        job_id,
        min_score: Optional[int] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[RankedCandidate]:
        """
        Rank all candidates for a job by score.

        ``min_score`` is applied after ranking; ``offset``/``limit`` slice
        the filtered list.

        Raises:
            NotFoundError: If the job does not exist
        """
        job = self.profile_store.get_job(job_id)
        requirement = JobRequirement.from_job(job)
        candidates = self.profile_store.all_candidates()

        ranked = self.ranker.rank(candidates, requirement, scorer_fn=self.cached_match)

        if min_score is not None:
            ranked = [r for r in ranked if r.result.score >= min_score]

        end = offset + limit if limit is not None else None
        page = ranked[offset:end]

        logger.info(
            f"Ranked {len(ranked)} candidates for job {job_id} "
            f"(min_score={min_score}, returned={len(page)})"
        )
        return page

    def analyze_skill_gaps(self, candidate_id, job_id) -> SkillGapAnalysis:
        """
        Raises:
            NotFoundError: If the candidate or job does not exist
        """
        candidate = self.profile_store.get_candidate(candidate_id)
        job = self.profile_store.get_job(job_id)
        return self.gap_analyzer.analyze(candidate.skills, JobRequirement.from_job(job))

    def cached_match(self, candidate, job: JobRequirement) -> MatchResult:
        """Match with a cache lookup keyed on both skill lists."""
        key = self._cache_key(candidate, job)
        result = self.cache.get(key)
        if result is None:
            result = self.ranker.score(candidate, job)
            self.cache.set(key, result, self.cache_timeout)
        return result

    def _cache_key(self, candidate, job: JobRequirement) -> str:
        payload = json.dumps(
            {
                'candidate': [s.to_dict() for s in parse_skills(candidate.skills)],
                'required': [s.to_dict() for s in job.required_skills],
                'preferred': [s.to_dict() for s in job.preferred_skills],
            },
            sort_keys=True,
        )
        digest = hashlib.sha256(payload.encode('utf-8')).hexdigest()[:16]
        return f"{self.cache_prefix}:{job.job_id}:{candidate.id}:{digest}"
