from __future__ import annotations

from dataclasses import dataclass, field

from clinic_scheduler.core.config import settings
from clinic_scheduler.db.session import InMemorySession
from clinic_scheduler.models import (
    AvailabilityRule,
    Enforcement,
    Provider,
    PTORoleDefault,
    Role,
    RuleType,
    ScheduleTemplate,
    Service,
    TemplateAssignment,
    TimeBlock,
)


@dataclass
class ProviderSeed:
    initials: str
    name: str
    role: Role
    default_room_count: int = 0
    capabilities: set[str] = field(default_factory=set)
    work_days: set[int] = field(default_factory=lambda: {1, 2, 3, 4, 5})
    email: str | None = None


# (name, time_block, requires_rooms, required_capability, show_on_main_calendar)
SERVICES = [
    ("Consults", TimeBlock.BOTH, False, None, True),
    ("Burgundy", TimeBlock.BOTH, False, None, True),
    ("Clinic", TimeBlock.BOTH, True, None, True),
    ("Echo", TimeBlock.BOTH, False, "echo", True),
    ("Nuclear", TimeBlock.BOTH, False, "nuclear", True),
    ("Cath Lab", TimeBlock.BOTH, False, "cath", True),
    (settings.pto_service_name, TimeBlock.BOTH, False, None, False),
]

PROVIDER_SEEDS = [
    ProviderSeed("DPR", "Derek Porter", Role.ATTENDING, 4, {"cath"}),
    ProviderSeed("APZ", "Alex Perez", Role.ATTENDING, 4, {"echo", "nuclear"}),
    ProviderSeed("AML", "Amelia Lang", Role.ATTENDING, 3, {"echo"}),
    ProviderSeed("JOO", "Joon Oh", Role.ATTENDING, 4, {"nuclear"}, work_days={1, 2, 3, 4}),
    ProviderSeed("KSG", "Katie Sung", Role.FELLOW, 2, {"echo"}),
    ProviderSeed("LMS", "Liam Singh", Role.FELLOW, 2),
    ProviderSeed("VJC", "Valerie Cruz", Role.NP, 3),
    ProviderSeed("MB", "Mara Blake", Role.PA, 3, work_days={1, 3, 5}),
]

ROLE_DEFAULTS = [
    (Role.ATTENDING, 25),
    (Role.FELLOW, 15),
    (Role.NP, 20),
    (Role.PA, 20),
]


def seed_core(session: InMemorySession) -> None:
    for name, block, requires_rooms, capability, on_main in SERVICES:
        session.add(
            Service(
                name=name,
                time_block=block,
                requires_rooms=requires_rooms,
                required_capability=capability,
                show_on_main_calendar=on_main,
            )
        )

    for seed in PROVIDER_SEEDS:
        session.add(
            Provider(
                name=seed.name,
                initials=seed.initials,
                role=seed.role,
                default_room_count=seed.default_room_count,
                capabilities=set(seed.capabilities),
                work_days=set(seed.work_days),
                email=seed.email or f"{seed.initials.lower()}@clinic.example",
            )
        )

    for role, allowance in ROLE_DEFAULTS:
        session.add(PTORoleDefault(role=role, annual_allowance=allowance))

    session.commit()


def seed_rules(session: InMemorySession) -> None:
    providers = {p.initials: p.id for p in session.all(Provider)}
    services = {s.name: s.id for s in session.all(Service)}

    # JOO reads nuclear studies on Tuesday and Thursday mornings only
    for dow in (2, 4):
        session.add(
            AvailabilityRule(
                provider_id=providers["JOO"],
                service_id=services["Nuclear"],
                day_of_week=dow,
                time_block=TimeBlock.AM,
                rule_type=RuleType.ALLOW,
                enforcement=Enforcement.HARD,
            )
        )
    session.add(
        AvailabilityRule(
            provider_id=providers["AML"],
            service_id=services["Clinic"],
            day_of_week=5,
            time_block=TimeBlock.PM,
            rule_type=RuleType.BLOCK,
            enforcement=Enforcement.WARN,
            reason="Protected research time",
        )
    )
    session.commit()


def seed_templates(session: InMemorySession) -> None:
    providers = {p.initials: p.id for p in session.all(Provider)}
    services = {s.name: s.id for s in session.all(Service)}

    week_a = ScheduleTemplate(name="Week A", description="Porter on consults, Perez in echo and the lab")
    week_b = ScheduleTemplate(name="Week B", description="Perez on consults, Porter in the lab")
    session.add_all([week_a, week_b])

    def add_week(template: ScheduleTemplate, consults: str, echo: str, lab: str) -> None:
        for dow in range(1, 6):
            session.add(
                TemplateAssignment(
                    template_id=template.id,
                    day_of_week=dow,
                    service_id=services["Consults"],
                    provider_id=providers[consults],
                    time_block=TimeBlock.BOTH,
                )
            )
            session.add(
                TemplateAssignment(
                    template_id=template.id,
                    day_of_week=dow,
                    service_id=services["Echo"],
                    provider_id=providers[echo],
                    time_block=TimeBlock.AM,
                )
            )
            session.add(
                TemplateAssignment(
                    template_id=template.id,
                    day_of_week=dow,
                    service_id=services["Cath Lab"],
                    provider_id=providers[lab],
                    time_block=TimeBlock.PM,
                )
            )
            session.add(
                TemplateAssignment(
                    template_id=template.id,
                    day_of_week=dow,
                    service_id=services["Clinic"],
                    provider_id=providers["VJC"],
                    time_block=TimeBlock.AM,
                    room_count=3,
                )
            )

    add_week(week_a, consults="DPR", echo="APZ", lab="APZ")
    add_week(week_b, consults="APZ", echo="AML", lab="DPR")
    session.commit()


def seed_all(session: InMemorySession) -> None:
    seed_core(session)
    seed_rules(session)
    seed_templates(session)
