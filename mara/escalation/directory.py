"""Static contact directory for human escalation.

Routing rules:
    - Unknown categories resolve to the general Student Services contact.
    - Prospective students always get the admissions contact, whatever the
      category, since the other offices only serve enrolled students.

Availability:
    `is_available` is a coarse local-time check (24/7 lines always open, closed on
    weekends, 8am-5pm otherwise). It is reported to callers, not enforced.
"""

from dataclasses import dataclass, field
from datetime import datetime

from mara.core.models import USER_TYPE_PROSPECTIVE


@dataclass(frozen=True)
class Contact:
    department: str
    contact_person: str
    email: str
    phone: str | None = None
    office_hours: str | None = None
    response_time: str | None = None
    services: tuple[str, ...] = field(default_factory=tuple)
    emergency_line: str | None = None

    def to_dict(self) -> dict:
        data = {
            "department": self.department,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "office_hours": self.office_hours,
            "response_time": self.response_time,
            "services": list(self.services),
        }
        if self.emergency_line:
            data["emergency_line"] = self.emergency_line
        return data


CONTACTS = {
    "fees": Contact(
        department="MSU Student Council - Fee Inquiries",
        contact_person="Rashid Farooq",
        email="rashiq.farooq@mcmaster.ca",
        office_hours="Mon-Thurs 8:00am-12:00pm, Fri 10:00am-12:00pm",
        response_time="2-4 business days",
        services=("Fee exemptions", "Bus pass inquiries", "Gym fee questions"),
    ),
    "wellness": Contact(
        department="Student Wellness Centre",
        contact_person="Counseling Team",
        email="wellness@mcmaster.ca",
        phone="905-525-9140 ext. 27700",
        office_hours="8:00am-10:00pm daily",
        response_time="45 minutes for callback",
        services=("Mental health support", "Counseling", "Crisis intervention", "Stress management"),
    ),
    "mental_health": Contact(
        department="Student Wellness Centre - Crisis Support",
        contact_person="Crisis Counselor",
        email="wellness@mcmaster.ca",
        phone="905-525-9140 ext. 27700",
        emergency_line="1-866-925-5454",
        office_hours="24/7 crisis line available",
        response_time="Immediate",
        services=("Crisis intervention", "Emergency mental health support"),
    ),
    "academics": Contact(
        department="Academic Advising",
        contact_person="Academic Advisor",
        email="advising@mcmaster.ca",
        phone="905-525-9140 ext. 24800",
        office_hours="Mon-Fri 9:00am-4:00pm",
        response_time="1-2 business days",
        services=("Course selection", "Academic planning", "Program requirements"),
    ),
    "admissions": Contact(
        department="Software Engineering - Admissions",
        contact_person="Dr. Laura Bennett",
        email="bennettl@mcmaster.ca",
        phone="905-525-9140 ext. 24500",
        office_hours="Mon-Thurs 9:00am-3:00pm",
        response_time="1-2 business days",
        services=("Degree completion program", "Application questions", "Program information"),
    ),
    "technical": Contact(
        department="IT Services",
        contact_person="Tech Support",
        email="uts@mcmaster.ca",
        phone="905-525-9140 ext. 24357",
        office_hours="Mon-Fri 8:00am-5:00pm",
        response_time="24 hours",
        services=("Mosaic access", "Email issues", "Online platform support"),
    ),
    "general": Contact(
        department="Student Services",
        contact_person="Student Support",
        email="student.services@mcmaster.ca",
        phone="905-525-9140",
        office_hours="Mon-Fri 8:30am-4:30pm",
        response_time="1-2 business days",
        services=("General inquiries", "Student support"),
    ),
}

PRIORITY_URGENT = "URGENT"
PRIORITY_HIGH = "HIGH"
PRIORITY_NORMAL = "NORMAL"


def resolve_category(category, user_type="current") -> str:
    """Directory key actually served for `category` and `user_type`."""
    if user_type == USER_TYPE_PROSPECTIVE:
        return "admissions"
    return category if category in CONTACTS else "general"


def get_contact(category, user_type="current") -> Contact:
    return CONTACTS[resolve_category(category, user_type)]


def all_contacts(user_type="current") -> dict[str, Contact]:
    if user_type == USER_TYPE_PROSPECTIVE:
        return {"admissions": CONTACTS["admissions"], "general": CONTACTS["general"]}
    return dict(CONTACTS)


def format_contact(contact: Contact, include_instructions: bool = True) -> str:
    """Render a contact as the markdown block appended to replies."""
    lines = [f"\n📞 **{contact.department}**\n"]

    if contact.contact_person:
        lines.append(f"**Contact:** {contact.contact_person}")
    if contact.email:
        lines.append(f"**Email:** {contact.email}")
    if contact.phone:
        lines.append(f"**Phone:** {contact.phone}")
    if contact.emergency_line:
        lines.append(f"**24/7 Crisis Line:** {contact.emergency_line}")
    if contact.office_hours:
        lines.append(f"**Office Hours:** {contact.office_hours}")
    if contact.response_time:
        lines.append(f"**Expected Response Time:** {contact.response_time}")

    message = "\n".join(lines) + "\n"
    if include_instructions:
        message += "\nI'll connect you with them to help resolve your concern."
    return message


def escalation_priority(emotional_state, category) -> str:
    if emotional_state == "crisis" or category == "mental_health":
        return PRIORITY_URGENT
    if emotional_state == "stressed" and category == "wellness":
        return PRIORITY_HIGH
    return PRIORITY_NORMAL


def is_available(category, now: datetime | None = None) -> dict:
    contact = CONTACTS.get(category)
    if contact is None or not contact.office_hours:
        return {"available": False, "reason": "Unknown hours"}

    if "24/7" in contact.office_hours:
        return {"available": True}

    now = now or datetime.now()
    if now.weekday() >= 5:
        return {"available": False, "reason": "Closed on weekends"}

    if 8 <= now.hour < 17:
        return {"available": True}

    return {"available": False, "reason": "Outside office hours"}
