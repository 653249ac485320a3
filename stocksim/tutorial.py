"""Financial-education lessons a user completes before receiving trading cash."""

from __future__ import annotations

from stocksim.models import TutorialLesson

TUTORIAL_LESSONS: tuple[TutorialLesson, ...] = (
    TutorialLesson(
        id="stocks-basics",
        title="Understanding Stocks",
        content=(
            "A stock represents partial ownership in a company. When you buy a share of "
            "stock, you become a shareholder and own a piece of that business. Stock prices "
            "fluctuate based on company performance, market conditions, and investor sentiment."
        ),
        question="What does owning a stock represent?",
        options=[
            "Lending money to a company",
            "Partial ownership in a company",
            "A guaranteed monthly payment",
            "Debt from the company",
        ],
        correct_answer=1,
    ),
    TutorialLesson(
        id="supply-demand",
        title="Supply and Demand",
        content=(
            "Stock prices are determined by supply and demand. When more people want to buy "
            "a stock than sell it, the price goes up. When more people want to sell than buy, "
            "the price falls."
        ),
        question="What happens to a stock price when demand significantly exceeds supply?",
        options=[
            "The price decreases",
            "The price stays the same",
            "The price increases",
            "Trading is halted",
        ],
        correct_answer=2,
    ),
    TutorialLesson(
        id="risk-reward",
        title="Risk and Reward",
        content=(
            "All investments carry risk. Generally, higher potential returns come with higher "
            "risk. Diversification, spreading investments across different assets, can help "
            "manage risk."
        ),
        question="What is the relationship between risk and potential reward in investing?",
        options=[
            "Lower risk usually means higher reward",
            "Higher risk usually means higher potential reward",
            "Risk and reward are unrelated",
            "Higher risk guarantees higher reward",
        ],
        correct_answer=1,
    ),
    TutorialLesson(
        id="market-orders",
        title="Market Orders",
        content=(
            "A market order is an instruction to buy or sell a stock immediately at the "
            "current market price. It prioritizes speed over price, so the final price may "
            "differ slightly from what you saw when placing the order."
        ),
        question="What is the main advantage of a market order?",
        options=[
            "You get the best possible price",
            "It executes immediately at current market price",
            "You can set a specific price",
            "It never loses money",
        ],
        correct_answer=1,
    ),
    TutorialLesson(
        id="portfolio-diversification",
        title="Building a Portfolio",
        content=(
            "A portfolio is your collection of investments. Spreading investments across "
            "different companies and sectors reduces risk: if one investment performs "
            "poorly, others may balance it out."
        ),
        question="Why is portfolio diversification important?",
        options=[
            "To maximize risk exposure",
            "To reduce the impact of any single investment failing",
            "To avoid paying taxes",
            "To guarantee profits",
        ],
        correct_answer=1,
    ),
)


def public_lesson(lesson: TutorialLesson) -> dict[str, object]:
    """Lesson payload without the correct answer."""
    return lesson.model_dump(exclude={"correct_answer"})
