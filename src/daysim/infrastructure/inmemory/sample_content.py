from __future__ import annotations

from typing import Any, Dict, List, Tuple

from daysim.domain.models.arc import ArcDefinition, ArcStep, ArcStepOption, RelationalEffect
from daysim.domain.models.resources import ResourceDelta


SAMPLE_CONTENT_STAMP = "sample-2026-01"


def _choice(choice_id: str, label: str, text: str, **deltas: Any) -> Dict[str, Any]:
    return {"id": choice_id, "label": label, "outcome": {"text": text, "deltas": deltas}}


SAMPLE_STORYLET_ROWS: List[Dict[str, Any]] = [
    {
        "id": "s-orientation",
        "slug": "orientation-day",
        "title": "Orientation Day",
        "body": "A crowded hall, a lanyard with your name misspelled, and a schedule that makes no sense yet.",
        "is_active": True,
        "tags": ["onboarding", "study"],
        "requirements": {"max_day_index": 3},
        "choices": [
            _choice("listen", "Sit near the front", "You catch every word and most of the jokes.", stress=-2, vectors={"focus": 2}),
            _choice("wander", "Slip out and explore", "The campus is bigger than the map suggested.", energy=-5, vectors={"curiosity": 2}),
        ],
    },
    {
        "id": "s-roommate-intro",
        "slug": "roommate-intro",
        "title": "The Other Bed",
        "body": "Your roommate has already claimed the desk by the window.",
        "is_active": True,
        "tags": ["onboarding", "social"],
        "requirements": {"max_day_index": 3},
        "choices": [
            _choice("introduce", "Introduce yourself", "An awkward handshake, then an easy laugh.", vectors={"social": 2}),
            _choice("unpack", "Unpack quietly", "The silence settles in with your boxes.", stress=2),
        ],
    },
    {
        "id": "s-library-shift",
        "slug": "library-shift",
        "title": "Late Shift at the Library",
        "body": "The stacks are empty after nine, and the returns cart is full.",
        "is_active": True,
        "tags": ["work"],
        "choices": [
            _choice("stay", "Finish the cart", "You leave after midnight with sore wrists.", energy=-10, resources={"cashOnHand": 15}),
            _choice("leave", "Clock out on time", "The cart will still be there tomorrow.", stress=3),
        ],
    },
    {
        "id": "s-problem-set",
        "slug": "problem-set",
        "title": "Problem Set Four",
        "body": "Question seven refuses to cooperate.",
        "is_active": True,
        "tags": ["study"],
        "choices": [
            {
                "id": "grind",
                "label": "Work it through",
                "check": {
                    "id": "focus_check",
                    "baseChance": 0.5,
                    "skillWeights": {"focus": 0.03},
                    "energyWeight": 0.002,
                    "stressWeight": 0.003,
                    "postureBonus": {"push": 0.1},
                },
                "outcomes": [
                    {"id": "success", "weight": 1, "text": "It clicks at last.", "deltas": {"stress": -3, "resources": {"knowledge": 3}}},
                    {"id": "failure", "weight": 1, "text": "You stare until the page blurs.", "deltas": {"stress": 5, "energy": -5}},
                ],
            },
            _choice("skip", "Ask a classmate tomorrow", "Future you will handle it.", stress=2),
        ],
    },
    {
        "id": "s-open-mic",
        "slug": "open-mic",
        "title": "Open Mic Night",
        "body": "Someone you half-know is signing people up by the door.",
        "is_active": True,
        "tags": ["social"],
        "choices": [
            {
                "id": "perform",
                "label": "Put your name down",
                "outcomes": [
                    {"id": "cheers", "weight": 1, "modifiers": {"vector": "social", "per10": 0.5}, "text": "The room warms to you.", "deltas": {"vectors": {"social": 3}}},
                    {"id": "crickets", "weight": 1, "text": "Polite applause, then the next act.", "deltas": {"stress": 4}},
                ],
            },
            _choice("watch", "Watch from the back", "You learn three new songs and one name.", vectors={"social": 1}),
        ],
    },
    {
        "id": "s-morning-run",
        "slug": "morning-run",
        "title": "Morning Run",
        "body": "The track is foggy and nearly empty.",
        "is_active": True,
        "tags": ["health"],
        "choices": [
            _choice("run", "Do the full loop", "Your lungs burn, then settle.", energy=-5, stress=-5, resources={"physicalResilience": 2}),
            _choice("walk", "Walk it instead", "Slow, but you showed up.", stress=-2),
        ],
    },
    {
        "id": "s-midterm-week",
        "slug": "midterm-week",
        "title": "Midterm Week",
        "body": "Every study room is booked until Friday.",
        "is_active": True,
        "tags": ["study"],
        "requirements": {"seasons_any": [1]},
        "choices": [
            _choice("cram", "Camp in the hallway", "You learn more than you expected about floor tiles.", energy=-10, resources={"knowledge": 4}),
            _choice("rest", "Sleep on it", "Rested, if underprepared.", stress=3, energy=5),
        ],
    },
    {
        "id": "s-beta-club-fair",
        "slug": "beta-club-fair",
        "title": "Club Fair",
        "body": "Forty tables, forty clipboards.",
        "is_active": True,
        "tags": ["social"],
        "requirements": {"audience": {"rollout_pct": 50, "allow_admin": True}},
        "choices": [
            _choice("sign_up", "Sign up for three clubs", "Your inbox will never recover.", resources={"socialLeverage": 2}),
            _choice("pass", "Just take the free pens", "Excellent pens, honestly.", stress=-1),
        ],
    },
]


SAMPLE_ARCS: Tuple[ArcDefinition, ...] = (
    ArcDefinition(
        id="roommate_v1",
        key="roommate_v1",
        title="Roommate Tensions",
        description="Sharing a room with someone whose habits slowly fray yours.",
        tags=("social",),
    ),
    ArcDefinition(
        id="anomaly_001",
        key="anomaly_001",
        title="The Misfiled Record",
        description="A record in the archive lists a student who was never enrolled.",
        tags=("mystery",),
    ),
)


SAMPLE_ARC_STEPS: Tuple[ArcStep, ...] = (
    ArcStep(
        id="roommate_v1:roommate_1",
        arc_id="roommate_v1",
        step_key="roommate_1",
        order_index=0,
        title="Dishes in the Sink",
        body="The pile has grown for three days. It is not yours.",
        options=(
            ArcStepOption(
                option_key="talk",
                label="Bring it up calmly",
                costs=ResourceDelta(resources={"energy": 5}),
                rewards=ResourceDelta(resources={"socialLeverage": 1}),
                relational_effects=RelationalEffect(npc_key="roommate", trust_delta=1, reliability_delta=1),
                next_step_key="roommate_2",
            ),
            ArcStepOption(
                option_key="ignore",
                label="Wash them yourself",
                costs=ResourceDelta(resources={"stress": 2}),
                relational_effects=RelationalEffect(npc_key="roommate", emotional_load_delta=1),
                identity_tags=("avoidant",),
                next_step_key="roommate_2",
            ),
        ),
        due_offset_days=0,
        expires_after_days=2,
    ),
    ArcStep(
        id="roommate_v1:roommate_2",
        arc_id="roommate_v1",
        step_key="roommate_2",
        order_index=1,
        title="The House Rules",
        body="Your roommate slides a list of proposed rules under the door.",
        options=(
            ArcStepOption(
                option_key="negotiate",
                label="Negotiate line by line",
                costs=ResourceDelta(resources={"energy": 10}),
                rewards=ResourceDelta(resources={"socialLeverage": 2}, skill_points=1),
                relational_effects=RelationalEffect(npc_key="roommate", trust_delta=2),
                outcome_type="resolved",
            ),
            ArcStepOption(
                option_key="sign",
                label="Sign without reading",
                costs=ResourceDelta(resources={"stress": 3}),
                relational_effects=RelationalEffect(npc_key="roommate", reliability_delta=-1),
                outcome_type="resolved",
            ),
        ),
        due_offset_days=1,
        expires_after_days=2,
    ),
    ArcStep(
        id="anomaly_001:step_0",
        arc_id="anomaly_001",
        step_key="step_0",
        order_index=0,
        title="A Name That Should Not Be There",
        body="The enrollment ledger lists a student with your birthday and no records at all.",
        options=(
            ArcStepOption(option_key="log_it", label="Log it with the registrar", next_step_key="branch_a_1"),
            ArcStepOption(
                option_key="go",
                label="Visit the listed dorm room",
                costs=ResourceDelta(resources={"energy": 10}),
                next_step_key="branch_b_1",
            ),
            ArcStepOption(
                option_key="test",
                label="Cross-check the archive",
                costs=ResourceDelta(resources={"energy": 5}),
                rewards=ResourceDelta(resources={"knowledge": 2}),
                next_step_key="branch_c_1",
            ),
            ArcStepOption(
                option_key="burn",
                label="Tear out the page",
                costs=ResourceDelta(resources={"stress": 4}),
                identity_tags=("secretive",),
            ),
        ),
        due_offset_days=0,
        expires_after_days=3,
    ),
    ArcStep(
        id="anomaly_001:branch_a_1",
        arc_id="anomaly_001",
        step_key="branch_a_1",
        order_index=1,
        title="The Registrar Calls Back",
        body="They have no record of your report.",
        options=(ArcStepOption(option_key="insist", label="Insist", costs=ResourceDelta(resources={"stress": 2})),),
        due_offset_days=1,
        expires_after_days=2,
    ),
    ArcStep(
        id="anomaly_001:branch_b_1",
        arc_id="anomaly_001",
        step_key="branch_b_1",
        order_index=1,
        title="Room 4B",
        body="The door opens onto a room furnished exactly like yours.",
        options=(ArcStepOption(option_key="enter", label="Step inside", costs=ResourceDelta(resources={"stress": 3})),),
        due_offset_days=1,
        expires_after_days=2,
    ),
    ArcStep(
        id="anomaly_001:branch_c_1",
        arc_id="anomaly_001",
        step_key="branch_c_1",
        order_index=1,
        title="Microfiche",
        body="The archive copy shows the same name, typed decades ago.",
        options=(
            ArcStepOption(
                option_key="copy",
                label="Print a copy",
                costs=ResourceDelta(resources={"cashOnHand": 2}),
                rewards=ResourceDelta(resources={"knowledge": 2}),
            ),
        ),
        due_offset_days=1,
        expires_after_days=2,
    ),
)
