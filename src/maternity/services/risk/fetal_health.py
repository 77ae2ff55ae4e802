from __future__ import annotations

import math

from src.maternity.domain.models.risk import FetalHealthAssessment, FetalHealthStatus

# A phone resting on the abdomen picks up movements the patient may not
# notice, so counts are scaled before comparison.
PHONE_ON_ABDOMEN_ADJUSTMENT = 1.2
FULL_SESSION_MINUTES = 120
EXPECTED_KICKS_PER_HOUR = 5


def assess_kick_session(
    kick_count: int,
    duration: float,
    phone_on_abdomen: bool = False,
) -> FetalHealthAssessment:
    """Rule-based assessment of a single counting session.

    Sessions of two hours or more use the count-to-ten guideline. Shorter
    sessions are compared against a pro-rated expectation of five kicks per
    hour and can at worst be ``Suspect``.
    """

    adjustment = PHONE_ON_ABDOMEN_ADJUSTMENT if phone_on_abdomen else 1.0

    if duration >= FULL_SESSION_MINUTES:
        adjusted = kick_count * adjustment
        if adjusted >= 10:
            return FetalHealthAssessment(
                predicted_class=0,
                confidence=0.85,
                status=FetalHealthStatus.NORMAL,
                message=(
                    "Your fetal movement pattern appears normal based on phone-on-abdomen monitoring."
                    if phone_on_abdomen
                    else "Your fetal movement pattern appears normal based on standard monitoring."
                ),
                recommendation="Continue monitoring regularly. This is a good sign of fetal well-being!",
            )
        if adjusted >= 6:
            return FetalHealthAssessment(
                predicted_class=1,
                confidence=0.70,
                status=FetalHealthStatus.SUSPECT,
                message="Your fetal movement count is below the typical range and should be monitored closely.",
                recommendation=(
                    "Consider repeating the count test and consult your healthcare provider "
                    "for additional monitoring."
                ),
            )
        return FetalHealthAssessment(
            predicted_class=2,
            confidence=0.90,
            status=FetalHealthStatus.CONCERNING,
            message="Your fetal movement count is significantly below normal ranges.",
            recommendation="Please contact your healthcare provider immediately for urgent evaluation.",
        )

    # Half-up rounding: 30 minutes expects 3 kicks, not 2.
    expected = math.floor(duration / 60 * EXPECTED_KICKS_PER_HOUR * adjustment + 0.5)
    if kick_count >= expected:
        return FetalHealthAssessment(
            predicted_class=0,
            confidence=0.80,
            status=FetalHealthStatus.NORMAL,
            message=(
                "Fetal movements detected within expected ranges using phone-on-abdomen monitoring."
                if phone_on_abdomen
                else "Fetal movements detected within expected ranges for this time period."
            ),
            recommendation=(
                "Continue monitoring. Consider a longer counting session for more comprehensive assessment."
            ),
        )
    return FetalHealthAssessment(
        predicted_class=1,
        confidence=0.75,
        status=FetalHealthStatus.SUSPECT,
        message="Fewer movements than expected for this time period.",
        recommendation="Extend your counting session and consult your healthcare provider if concerned.",
    )
