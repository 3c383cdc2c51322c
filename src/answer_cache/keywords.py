"""Keyword heuristics for Korean student questions.

Vector similarity alone happily matches "영어 시험 일정" with "수학 시험 일정".
The helpers here extract three keyword families from normalized text so the
matcher can reject candidates that are about a different subject, ask a
different kind of question, or share too few content words.
"""

import re
import string

_WHITESPACE = re.compile(r"\s+")
_TOKEN_SPLIT = re.compile(r"[\s" + re.escape(string.punctuation) + r"]+")

# Applied in order, so "편입 시험 일정" becomes "편입시험일정".
COMPOUND_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern), replacement)
    for pattern, replacement in (
        (r"편입\s+전형", "편입전형"),
        (r"편입\s+시험", "편입시험"),
        (r"편입\s+일정", "편입일정"),
        (r"시험\s+일정", "시험일정"),
        (r"시험\s+전형", "시험전형"),
        (r"모의\s+고사", "모의고사"),
        (r"단어\s+장", "단어장"),
        (r"문제\s+집", "문제집"),
        (r"오답\s+노트", "오답노트"),
        (r"학습\s+법", "학습법"),
        (r"커리\s+큘럼", "커리큘럼"),
    )
)

SUBJECT_KEYWORDS = frozenset({
    "영어", "수학", "물리", "화학", "생물", "지구과학",
    "국어", "한국어", "문학",
    "역사", "지리", "사회",
    "컴퓨터", "소프트웨어", "프로그래밍", "코딩",
    "공학", "전기", "전자", "기계", "건축",
    "경제", "경영", "회계", "마케팅",
    "의학", "간호", "약학",
    "교육", "심리", "사회복지",
})

QUESTION_TYPE_KEYWORDS = frozenset({
    # timing
    "일정", "시기", "언제", "기간", "날짜", "전날", "직전", "시작", "끝", "마무리",
    "몇월", "몇일", "언제부터", "언제까지", "시작하는", "끝내는",
    # method
    "방법", "어떻게", "순서", "배분", "루틴", "복습", "계획", "공부", "학습",
    "외워야", "암기", "회독", "정리", "작성", "활용", "진행", "접근",
    # problem type
    "문제", "문제유형", "문제형식", "출제", "기출", "유형", "형식", "패턴",
    "어떤문제", "문제가", "문제를", "문제풀이",
    # preparation
    "준비", "준비방법", "전략", "대비", "점검", "확인",
    "준비해야", "대비해야", "준비하는",
    # competition and scores
    "합격률", "경쟁률", "난이도", "백분위", "성적", "점수", "등급",
    "몇점", "몇퍼센트", "상위",
    # requirement
    "필요", "필수", "요구사항", "중요", "필요한", "필요한가",
    "꼭", "반드시", "해야", "해야하나",
    # selection and purchase
    "어떤", "어느", "선택", "구매", "교재", "단어장", "문제집",
    "어떤것", "어느것", "어떤걸", "어느걸",
    # time and quantity
    "몇시간", "몇강", "몇개", "얼마나", "하루", "주말", "평일",
    "시간", "분량", "양", "비율", "비중",
    # headcount and admission
    "모집인원", "인원", "명", "몇명", "정원", "모집", "선발",
    "지원자", "합격자",
    # curriculum
    "진도", "커리큘럼", "과정", "단계", "레벨",
    "진도를", "진도가", "커리큘럼을",
    # skill level
    "실력", "올리려면", "올리는", "향상", "부족", "어렵", "느린", "빠른",
})

STOP_WORDS = frozenset({
    "은", "는", "이", "가", "을", "를", "의", "에", "에서", "로", "으로",
    "와", "과", "도", "만", "부터", "까지", "에게", "한테", "께",
    "해주세요", "해주", "주세요", "주", "해", "하", "할", "하는", "한",
    "때", "때문", "것", "거", "게", "건", "거야", "거예요",
    "어떤", "어떻게", "무엇", "뭐", "왜", "어디", "언제", "누구",
    "있", "없", "되", "안", "못",
})

# Transfer-admission vocabulary used by the answer quality heuristic
DOMAIN_KEYWORDS = ("편입", "모집요강", "시험", "학점", "지원", "입학", "대학")

HEDGING_PHRASES = ("죄송", "모르겠", "확실하지 않")

STRUCTURE_MARKERS = ("1.", "-", "•")

MIN_KEYWORD_OVERLAP_RATIO = 0.3
MIN_KEYWORD_OVERLAP_COUNT = 2
SPARSE_KEYWORD_COUNT = 2


def normalize_text(text: str) -> str:
    """Collapse whitespace and merge known compounds written with spaces."""
    if not text:
        return text
    text = _WHITESPACE.sub(" ", text)
    for pattern, replacement in COMPOUND_PATTERNS:
        text = pattern.sub(replacement, text)
    return text.strip()


def extract_keywords(text: str) -> set[str]:
    """Generic content tokens: at least two characters, stop words removed."""
    keywords = set()
    for word in _TOKEN_SPLIT.split(normalize_text(text)):
        word = word.strip().lower()
        if len(word) >= 2 and word not in STOP_WORDS:
            keywords.add(word)
    return keywords


def extract_subject_keywords(text: str) -> set[str]:
    lowered = normalize_text(text).lower()
    return {keyword for keyword in SUBJECT_KEYWORDS if keyword in lowered}


def extract_question_type_keywords(text: str) -> set[str]:
    lowered = normalize_text(text).lower()
    return {keyword for keyword in QUESTION_TYPE_KEYWORDS if keyword in lowered}


def families_compatible(left: set[str], right: set[str]) -> bool:
    """A keyword family passes when neither side has one, or both share one.

    One side having a family the other lacks counts as a mismatch.
    """
    if not left and not right:
        return True
    return bool(left & right)


def has_significant_keyword_overlap(left: set[str], right: set[str]) -> bool:
    """Require 30% (of the smaller set) or two shared tokens.

    Sets with two keywords or fewer are too sparse to judge and pass.
    """
    if len(left) <= SPARSE_KEYWORD_COUNT or len(right) <= SPARSE_KEYWORD_COUNT:
        return True

    shared = len(left & right)
    ratio = shared / min(len(left), len(right))
    return ratio >= MIN_KEYWORD_OVERLAP_RATIO or shared >= MIN_KEYWORD_OVERLAP_COUNT


def count_occurrences(text: str, terms: tuple[str, ...]) -> int:
    """Total non-overlapping occurrences of every term in text."""
    return sum(text.count(term) for term in terms)
