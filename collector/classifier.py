"""
Keyword-bucket classification of business type and industry

A classification is only assigned when the signal is strong enough; weak or
balanced evidence stays UNKNOWN.
"""

from typing import Dict, List, Tuple

from .models import BusinessProfile, BusinessType


B2B_KEYWORDS = (
    'enterprise', 'business', 'corporate', 'wholesale', 'b2b',
    'api', 'integration', 'solution', 'platform', 'saas',
)

B2C_KEYWORDS = (
    'consumer', 'personal', 'individual', 'retail', 'b2c',
    'shopping', 'buy now', 'add to cart', 'customer', 'user',
)

# Minimum hits for one side to win outright
MIN_SIDE_SCORE = 2
# Minimum hits on both sides for a mixed classification
MIN_BOTH_SCORE = 1
# Minimum hits for an industry to be reported
MIN_INDUSTRY_SCORE = 2

INDUSTRY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'construction': ('construction', 'building', 'contractor', 'concrete', 'steel',
                     'excavation', 'project', 'facility'),
    'healthcare': ('healthcare', 'medical', 'hospital', 'clinic', 'doctor', 'patient',
                   'health', 'treatment'),
    'technology': ('software', 'tech', 'digital', 'app', 'platform', 'saas',
                   'development', 'programming'),
    'finance': ('financial', 'banking', 'investment', 'loan', 'credit', 'insurance',
                'money', 'finance'),
    'retail': ('retail', 'store', 'shop', 'product', 'inventory', 'sales', 'shopping',
               'commerce'),
    'education': ('education', 'school', 'university', 'learning', 'training', 'course',
                  'student', 'academic'),
    'manufacturing': ('manufacturing', 'production', 'factory', 'assembly', 'quality',
                      'industrial', 'machinery'),
    'real-estate': ('real estate', 'property', 'housing', 'commercial', 'residential',
                    'realty', 'broker'),
    'consulting': ('consulting', 'advisory', 'strategy', 'management', 'expertise',
                   'consultant', 'services'),
    'nonprofit': ('nonprofit', 'charity', 'foundation', 'volunteer', 'donation', 'cause',
                  'mission'),
}


def _hits(text: str, keywords: Tuple[str, ...]) -> int:
    return sum(1 for keyword in keywords if keyword in text)


def detect_business_type(text: str) -> Tuple[BusinessType, float]:
    lower_text = (text or '').lower()
    b2b_score = _hits(lower_text, B2B_KEYWORDS)
    b2c_score = _hits(lower_text, B2C_KEYWORDS)
    total_score = b2b_score + b2c_score

    if total_score == 0:
        return BusinessType.UNKNOWN, 0.0
    if b2b_score > b2c_score and b2b_score > MIN_SIDE_SCORE:
        return BusinessType.B2B, b2b_score / total_score * 100
    if b2c_score > b2b_score and b2c_score > MIN_SIDE_SCORE:
        return BusinessType.B2C, b2c_score / total_score * 100
    if b2b_score > MIN_BOTH_SCORE and b2c_score > MIN_BOTH_SCORE:
        return BusinessType.BOTH, min(b2b_score, b2c_score) / total_score * 100
    return BusinessType.UNKNOWN, 0.0


def detect_industries(text: str) -> Tuple[List[str], float]:
    lower_text = (text or '').lower()
    industries = []
    total = 0

    for industry, keywords in INDUSTRY_KEYWORDS.items():
        score = _hits(lower_text, keywords)
        if score >= MIN_INDUSTRY_SCORE:
            industries.append(industry)
            total += score

    confidence = total / len(industries) * 10 if industries else 0.0
    return industries, confidence


def classify(text: str) -> BusinessProfile:
    business_type, type_confidence = detect_business_type(text)
    industries, industry_confidence = detect_industries(text)
    return BusinessProfile(
        business_type=business_type,
        business_type_confidence=round(type_confidence, 1),
        industries=industries,
        industry_confidence=round(industry_confidence, 1),
    )
