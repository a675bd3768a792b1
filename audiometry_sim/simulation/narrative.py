"""Deterministic case narratives built from catalog material."""
from .case import CaseNarrative
from .disorders import PROFILES

SIDE_NAMES = {'R': 'right', 'L': 'left'}
SEVERITY_NAMES = ('minimal', 'mild', 'moderate', 'severe')


def build_narrative(meta, profile=None):
    """
    Compose chief complaint, history and findings for a case.

    The episode shown as the chief complaint is picked from the seed, so
    the same case always reads the same way.

    Args:
        meta (CaseMeta): Case metadata
        profile (Profile, optional): Catalog profile, looked up from
            ``meta.profile`` when omitted

    Returns:
        CaseNarrative
    """
    profile = profile or PROFILES.get(meta.profile)
    if profile is None:
        return CaseNarrative()

    patient = f"{meta.sex} patient in their {meta.age_group}"
    episodes = profile.episodes or ('No specific complaint',)
    lead = episodes[meta.seed % len(episodes)]

    if meta.affected_side:
        chief = f"{lead} ({SIDE_NAMES[meta.affected_side]} ear)."
    else:
        chief = f"{lead}."

    others = [e for e in episodes if e != lead]
    history = f"{patient}. {profile.label}"
    if profile.category != 'Normal':
        history += f", {SEVERITY_NAMES[meta.severity]} degree"
    history += "."
    if others:
        history += " " + ". ".join(others) + "."

    findings = (
        f"Audiogram: {profile.audiogram_note} "
        f"Tympanometry: {profile.tympanometry_note}. "
        f"Acoustic reflex: {profile.reflex_note}. "
        f"OAE: {profile.oae_note}."
    )
    return CaseNarrative(chief_complaint=chief, history=history, findings=findings)
