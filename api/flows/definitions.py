"""
Texts for the insurance-coverage follow-up flow.
"""

from llm.records import BenefitAccount


def format_inr(amount: float) -> str:
    """Format an amount in rupees with Indian digit grouping (₹5,00,000)."""
    negative = amount < 0
    whole = str(int(round(abs(amount))))
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{'-' if negative else ''}₹{whole}"


def card_possession_question(total_coverage: float) -> str:
    return (
        "By the way, do you have an Ayushman Bharat (PM-JAY) card? It can cover up to "
        f"{format_inr(total_coverage)} of your treatment costs each year. Please reply yes or no."
    )


def usage_amount_prompt(total_coverage: float) -> str:
    return (
        "That's good to know! How much of your "
        f"{format_inr(total_coverage)} coverage have you already used this year? "
        "You can reply with an amount (for example 50000), a percentage (for example 10%), "
        "or \"none\" if you haven't used it yet."
    )


NO_CARD_REPLY = (
    "Thank you for letting me know. If you don't have an Ayushman Bharat card yet, here are some options:\n"
    "- Check your eligibility on the PM-JAY portal (beneficiary.nha.gov.in) or by calling 14555.\n"
    "- Visit the Ayushman Mitra desk at the hospital with your Aadhaar and ration card to enroll.\n"
    "- Ask the hospital's medical social worker about state cancer-care schemes and the "
    "Health Minister's Cancer Patient Fund.\n"
    "- Many NGOs and charitable trusts also support radiotherapy costs. The social work "
    "department can point you to them."
)

UNPARSED_AMOUNT_REPLY = (
    "I couldn't quite read an amount in your reply, so I haven't changed your coverage details. "
    "You can update them any time with the hospital's Ayushman desk, or ask me about coverage again."
)


def format_coverage_summary(account: BenefitAccount) -> str:
    """Summary of the patient's coverage after they report usage."""
    lines = [
        "Here's a summary of your Ayushman Bharat coverage:",
        f"- Total coverage: {format_inr(account.total_coverage)}",
        f"- Amount used: {format_inr(account.amount_used)}",
        f"- Amount remaining: {format_inr(account.amount_remaining)}",
        f"- Coverage used: {account.percent_used:.1f}%",
        "",
    ]

    if account.amount_remaining > 0:
        lines.append(
            f"Your remaining {format_inr(account.amount_remaining)} can cover radiotherapy sessions, "
            "planning scans, medicines and hospital stays at empanelled hospitals. Carry your card "
            "and Aadhaar to each visit so the Ayushman desk can pre-authorize your treatment."
        )
    else:
        lines.append(
            "It looks like your coverage for this year is used up. The hospital's medical social "
            "worker can help you apply for the Health Minister's Cancer Patient Fund, state "
            "schemes or charitable support to continue your treatment without interruption."
        )

    return "\n".join(lines)
