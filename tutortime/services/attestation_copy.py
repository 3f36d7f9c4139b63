# TutorTime - Weekly Attestation Copy
# Bump WEEKLY_ATTESTATION_TEXT_VERSION whenever the statement wording changes

WEEKLY_ATTESTATION_TEXT_VERSION = "weekly-v1"

WEEKLY_ATTESTATION_STATEMENT = (
    "By signing, I affirm my timecard is accurate to the minute for this workweek "
    "(Sunday 12:00 a.m. - Saturday 11:59 p.m.), I recorded my actual start/end times and meal "
    "periods, I received all required breaks according to my state addendum, and I have reported "
    "any missed, short, late, or interrupted breaks truthfully. Truthfully reporting a break or "
    "meal issue will never result in discipline. However, falsifying time records or this "
    "attestation may result in discipline, up to and including termination."
)

WORKWEEK_DEFINITION = (
    "Workweek: The fixed seven-day period from Sunday at 12:00 a.m. through Saturday at "
    "11:59 p.m. We use this timeframe to calculate overtime pay."
)

TIMEKEEPING_QUOTES = (
    "Exact Timekeeping - No Rounding and No Off-the-Clock Work. You must record your time "
    "accurately, to the minute. Record: Your actual start time; When you clock out for meals; "
    "When you clock back in from meals; Your actual end time.",
    "Critical rules: Never work 'off the clock' (without recording your time). Never record time "
    "for another person. Never alter time records. If you notice an error, report it immediately. "
    "Falsifying time records is considered gross misconduct and will result in termination.",
)

ATTESTATION_QUOTE = (
    "Weekly attestation: before entering time for a new workweek, confirm that the hours you "
    "recorded for the previous workweek are complete and accurate."
)


def copy_payload() -> dict:
    return {
        "workweekDefinition": WORKWEEK_DEFINITION,
        "timekeepingQuotes": list(TIMEKEEPING_QUOTES),
        "attestationQuote": ATTESTATION_QUOTE,
        "weeklyAttestationStatement": WEEKLY_ATTESTATION_STATEMENT,
    }
