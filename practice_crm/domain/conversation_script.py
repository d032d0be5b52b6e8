"""Scripted intake conversation: questions, reply options and branching table."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Union

from practice_crm.domain.entities.conversation_response import ConversationResponse

COMPLETE_SENTINEL = "complete"


class FlowOutcome(str, Enum):
    """End states of the intake conversation."""

    COMPLETE = "complete"
    NOT_IN_STATE = "not_in_state"
    NOT_INTERESTED = "not_interested"
    INSURANCE_REFERRALS = "insurance_referrals"

    @property
    def is_qualified(self) -> bool:
        """Whether the contact finished the script without being referred out."""
        return self == FlowOutcome.COMPLETE


BranchTarget = Union[str, FlowOutcome]


@dataclass(frozen=True)
class ReplyOption:
    """One accepted reply to a question."""

    keys: tuple[str, ...]  # substrings that select this option, e.g. ("1", "yes")
    label: str
    value: str


@dataclass(frozen=True)
class Question:
    """A scripted question."""

    id: str
    text: str  # short form stored with the answer
    prompt: str  # message shown to the contact
    options: tuple[ReplyOption, ...] = ()
    multi_select: bool = False
    follow_up_prompts: dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    def interpret(self, reply: str) -> tuple[str, str]:
        """
        Map a free-text reply to a display response and a normalized value.

        Single-select questions take the first option whose key appears in the
        reply. Multi-select questions collect every matching option. Replies
        that match nothing are kept verbatim.

        Args:
            reply: Raw reply text

        Returns:
            Tuple of (response, response_value)
        """
        inbound = (reply or "").strip().lower()

        if self.multi_select:
            matched = [
                option
                for option in self.options
                if any(key in inbound for key in option.keys)
            ]
            if matched:
                return (
                    ", ".join(option.label for option in matched),
                    ",".join(option.value for option in matched),
                )
            return reply.strip(), inbound

        for option in self.options:
            if any(key in inbound for key in option.keys):
                return option.label, option.value
        return reply.strip(), inbound


@dataclass(frozen=True)
class ScriptProgress:
    """Where a contact stands in the script, derived from recorded answers."""

    next_question: Optional[Question]
    next_prompt: Optional[str]
    outcome: Optional[FlowOutcome]

    @property
    def complete(self) -> bool:
        """Whether the conversation reached an end state."""
        return self.outcome is not None

    @property
    def next_id(self) -> str:
        """Next question id, or the 'complete' sentinel."""
        if self.next_question is None:
            return COMPLETE_SENTINEL
        return self.next_question.id


def normalize_value(value: Optional[str]) -> str:
    """Normalize a response value for branch lookup."""
    return (value or "").strip().lower()


class ConversationScript:
    """Ordered question script with table-driven branching."""

    def __init__(
        self,
        questions: list[Question],
        branches: dict[tuple[str, str], BranchTarget],
        closing_messages: dict[FlowOutcome, str],
    ) -> None:
        """
        Initialize script.

        Args:
            questions: Questions in default order
            branches: (question_id, normalized value) -> question id or outcome
            closing_messages: Message sent when the flow ends in each outcome
        """
        if not questions:
            raise ValueError("Conversation script needs at least one question")
        self._questions = list(questions)
        self._by_id = {question.id: question for question in self._questions}
        self._branches = {
            (question_id, normalize_value(value)): target
            for (question_id, value), target in branches.items()
        }
        self._closing_messages = dict(closing_messages)

        for (question_id, _), target in self._branches.items():
            if question_id not in self._by_id:
                raise ValueError(f"Branch refers to unknown question: {question_id}")
            if isinstance(target, str) and not isinstance(target, FlowOutcome):
                if target not in self._by_id:
                    raise ValueError(f"Branch targets unknown question: {target}")

    @property
    def question_ids(self) -> list[str]:
        """Question ids in script order."""
        return [question.id for question in self._questions]

    @property
    def first(self) -> Question:
        """First question of the script."""
        return self._questions[0]

    def is_valid_id(self, question_id: str) -> bool:
        """Check that a question id is defined by the script."""
        return question_id in self._by_id

    def question(self, question_id: str) -> Question:
        """
        Get a question by id.

        Raises:
            KeyError: If the id is not part of the script
        """
        return self._by_id[question_id]

    def closing_message(self, outcome: FlowOutcome) -> str:
        """Message sent when the flow ends in the given outcome."""
        return self._closing_messages.get(outcome, "")

    def order_of(self, question_id: str) -> int:
        """Position of a question in the script."""
        return self.question_ids.index(question_id)

    def successor(self, question_id: str, response_value: Optional[str]) -> BranchTarget:
        """
        Select what follows an answered question.

        Consults the branch table first, then the default successor. After the
        last question the flow is complete.

        Args:
            question_id: Answered question
            response_value: Normalized answer value

        Returns:
            Next question id or an end outcome
        """
        branch = self._branches.get((question_id, normalize_value(response_value)))
        if branch is not None:
            return branch

        index = self.order_of(question_id)
        if index + 1 < len(self._questions):
            return self._questions[index + 1].id
        return FlowOutcome.COMPLETE

    def progress(self, responses: Mapping[str, ConversationResponse]) -> ScriptProgress:
        """
        Derive the current position from recorded answers.

        Walks the script from the first question following recorded answers
        until it reaches an unanswered question or an end state.

        Args:
            responses: Recorded answers keyed by question id

        Returns:
            ScriptProgress
        """
        current = self.first
        visited: set[str] = set()

        while True:
            answer = responses.get(current.id)
            if answer is None or current.id in visited:
                return ScriptProgress(current, current.prompt, None)
            visited.add(current.id)

            target = self.successor(current.id, answer.response_value)
            if isinstance(target, FlowOutcome):
                return ScriptProgress(None, self.closing_message(target), target)
            if target == current.id:
                # Re-ask with an explanation, e.g. "What's a superbill?"
                prompt = current.follow_up_prompts.get(
                    normalize_value(answer.response_value), current.prompt
                )
                return ScriptProgress(current, prompt, None)
            current = self._by_id[target]


PULL_FORWARD_QUESTION = "pull_forward_offer"  # a today/tomorrow answer moves the appointment

_REFERRALS = (
    "Open Path Collective (affordable sessions) https://openpathcollective.org\n"
    "Inclusive Therapists (affirming providers) https://www.inclusivetherapists.com"
)


def build_intake_script() -> ConversationScript:
    """
    Build the practice's intake script.

    Returns:
        ConversationScript for georgia_location -> fit_or_free_offer ->
        private_pay_rate -> main_focus -> pull_forward_offer
    """
    questions = [
        Question(
            id="georgia_location",
            text="Are you in Georgia?",
            prompt="Are you in Georgia?\n1 = Yes\n2 = No",
            options=(
                ReplyOption(("1", "yes"), "Yes - in Georgia", "yes"),
                ReplyOption(("2", "no"), "No - not in Georgia", "no"),
            ),
        ),
        Question(
            id="fit_or_free_offer",
            text="Interested in Fit or Free first session?",
            prompt=(
                "Awesome, we run a Fit or Free first session. If it doesn't feel helpful "
                "or like a fit, there's no charge. If it does, we'll continue weekly or "
                "bi-weekly. Sound fair?\n1 = Yes\n2 = No"
            ),
            options=(
                ReplyOption(("1", "yes"), "Yes - interested in Fit or Free", "yes"),
                ReplyOption(("2", "no"), "No - not interested in Fit or Free", "no"),
            ),
        ),
        Question(
            id="private_pay_rate",
            text="Proceed with $150 private pay?",
            prompt=(
                "Great, sessions are $150 private pay. We can provide a superbill for "
                "out-of-network reimbursement. Proceed?\n1 = Yes\n2 = What's a superbill?\n"
                "3 = Prefer insurance referrals"
            ),
            options=(
                ReplyOption(("1", "yes"), "Yes - proceed with private pay", "proceed"),
                ReplyOption(("2", "superbill"), "What is a superbill?", "superbill_question"),
                ReplyOption(("3", "insurance"), "Prefer insurance referrals", "insurance_referrals"),
            ),
            follow_up_prompts={
                "superbill_question": (
                    "A superbill is a receipt with the codes your insurer needs for "
                    "out-of-network reimbursement. Many clients submit and get partial "
                    "reimbursement, but it depends on your plan.\nProceed private pay while "
                    "you check reimbursement?\n1 = Yes\n3 = Prefer insurance referrals"
                ),
            },
        ),
        Question(
            id="main_focus",
            text="Main focus area?",
            prompt=(
                "Main focus?\n1 = Anxiety\n2 = Trauma\n3 = Burnout\n4 = Self-Esteem\n"
                "5 = Relationships\n6 = Transitions\n7 = Identity\n8 = ND Support\n"
                "9 = Stress\n0 = Other"
            ),
            options=(
                ReplyOption(("1",), "Anxiety", "anxiety"),
                ReplyOption(("2",), "Trauma", "trauma"),
                ReplyOption(("3",), "Burnout", "burnout"),
                ReplyOption(("4",), "Self-Esteem", "self_esteem"),
                ReplyOption(("5",), "Relationships", "relationships"),
                ReplyOption(("6",), "Transitions", "transitions"),
                ReplyOption(("7",), "Identity", "identity"),
                ReplyOption(("8",), "ND Support", "nd_support"),
                ReplyOption(("9",), "Stress", "stress"),
                ReplyOption(("0",), "Other", "other"),
            ),
            multi_select=True,
        ),
        Question(
            id=PULL_FORWARD_QUESTION,
            text="Pull forward appointment?",
            prompt=(
                "I can get you in sooner if that helps. Would you like an earlier slot?\n"
                "1 = Today\n2 = Tomorrow\n3 = Keep current time"
            ),
            options=(
                ReplyOption(("1", "today"), "Move to today", "today"),
                ReplyOption(("2", "tomorrow"), "Move to tomorrow", "tomorrow"),
                ReplyOption(("3", "keep"), "Keep current time", "keep_current"),
            ),
        ),
    ]

    branches: dict[tuple[str, str], BranchTarget] = {
        ("georgia_location", "no"): FlowOutcome.NOT_IN_STATE,
        ("fit_or_free_offer", "no"): FlowOutcome.NOT_INTERESTED,
        ("private_pay_rate", "superbill_question"): "private_pay_rate",
        ("private_pay_rate", "insurance_referrals"): FlowOutcome.INSURANCE_REFERRALS,
    }

    closing_messages = {
        FlowOutcome.COMPLETE: (
            "Thanks, you're all set. We'll see you at your consultation. "
            "Reply HELP for support."
        ),
        FlowOutcome.NOT_IN_STATE: (
            "Unfortunately we can only see clients that are located in GA. "
            f"Here are a few referrals that may help:\n{_REFERRALS}\nWishing you the best."
        ),
        FlowOutcome.NOT_INTERESTED: (
            f"Totally get it. Here are a few referrals that may help:\n{_REFERRALS}\n"
            "Wishing you the best."
        ),
        FlowOutcome.INSURANCE_REFERRALS: (
            "Got it. We're private pay only, but here are two great resources to find "
            f"in-network or reduced-fee support:\n{_REFERRALS}\nWishing you the best."
        ),
    }

    return ConversationScript(questions, branches, closing_messages)
