"""Shas completion tracker.

Masechtos are static reference rows; a completion is one row per
(masechta, gemara|mishnayos). Progress is reported both as a share of
masechtos and as a share of learning units, grouped by seder.
"""
import logging
from dataclasses import dataclass, field, asdict

from models import db, ShasMasechta, ShasCompletion
from repository import NotFound, ValidationError, commit

logger = logging.getLogger(__name__)

COMPLETION_TYPES = ("gemara", "mishnayos")

SEDERS = [
    ("zeraim",  "Zeraim"),
    ("moed",    "Moed"),
    ("nashim",  "Nashim"),
    ("nezikin", "Nezikin"),
    ("kodshim", "Kodshim"),
    ("taharos", "Taharos"),
]

UNIT_LABELS = {"gemara": "daf", "mishnayos": "perakim"}

# ── Reference list: (seder, name, perakim, daf count or None) ─────────────────
# Daf counts follow the daf yomi cycle; None = no Bavli.
MASECHTOS = [
    ("zeraim",  "Berachos",       9,   63),
    ("zeraim",  "Peah",           8,   None),
    ("zeraim",  "Demai",          7,   None),
    ("zeraim",  "Kilayim",        9,   None),
    ("zeraim",  "Sheviis",        10,  None),
    ("zeraim",  "Terumos",        11,  None),
    ("zeraim",  "Maasros",        5,   None),
    ("zeraim",  "Maaser Sheni",   5,   None),
    ("zeraim",  "Challah",        4,   None),
    ("zeraim",  "Orlah",          3,   None),
    ("zeraim",  "Bikkurim",       4,   None),

    ("moed",    "Shabbos",        24,  156),
    ("moed",    "Eruvin",         10,  104),
    ("moed",    "Pesachim",       10,  120),
    ("moed",    "Shekalim",       8,   21),
    ("moed",    "Yoma",           8,   87),
    ("moed",    "Sukkah",         5,   55),
    ("moed",    "Beitzah",        5,   39),
    ("moed",    "Rosh Hashanah",  4,   34),
    ("moed",    "Taanis",         4,   30),
    ("moed",    "Megillah",       4,   31),
    ("moed",    "Moed Katan",     3,   28),
    ("moed",    "Chagigah",       3,   26),

    ("nashim",  "Yevamos",        16,  121),
    ("nashim",  "Kesubos",        13,  111),
    ("nashim",  "Nedarim",        11,  90),
    ("nashim",  "Nazir",          9,   65),
    ("nashim",  "Sotah",          9,   48),
    ("nashim",  "Gittin",         9,   89),
    ("nashim",  "Kiddushin",      4,   81),

    ("nezikin", "Bava Kamma",     10,  118),
    ("nezikin", "Bava Metzia",    10,  118),
    ("nezikin", "Bava Basra",     10,  175),
    ("nezikin", "Sanhedrin",      11,  112),
    ("nezikin", "Makkos",         3,   23),
    ("nezikin", "Shevuos",        8,   48),
    ("nezikin", "Eduyos",         8,   None),
    ("nezikin", "Avodah Zarah",   5,   75),
    ("nezikin", "Avos",           6,   None),
    ("nezikin", "Horayos",        3,   13),

    ("kodshim", "Zevachim",       14,  119),
    ("kodshim", "Menachos",       13,  109),
    ("kodshim", "Chullin",        12,  141),
    ("kodshim", "Bechoros",       9,   60),
    ("kodshim", "Arachin",        9,   33),
    ("kodshim", "Temurah",        7,   33),
    ("kodshim", "Kereisos",       6,   27),
    ("kodshim", "Meilah",         6,   21),
    ("kodshim", "Tamid",          7,   9),
    ("kodshim", "Middos",         5,   4),
    ("kodshim", "Kinnim",         3,   3),

    ("taharos", "Keilim",         30,  None),
    ("taharos", "Ohalos",         18,  None),
    ("taharos", "Negaim",         14,  None),
    ("taharos", "Parah",          12,  None),
    ("taharos", "Taharos",        10,  None),
    ("taharos", "Mikvaos",        10,  None),
    ("taharos", "Niddah",         10,  72),
    ("taharos", "Machshirin",     6,   None),
    ("taharos", "Zavim",          5,   None),
    ("taharos", "Tevul Yom",      4,   None),
    ("taharos", "Yadayim",        4,   None),
    ("taharos", "Uktzin",         3,   None),
]


@dataclass
class SederProgress:
    key: str
    label: str
    total: int
    completed: int
    total_units: int
    completed_units: int
    percent: float


@dataclass
class ShasProgress:
    completion_type: str
    unit_label: str
    total: int
    completed: int
    total_units: int
    completed_units: int
    percent: float
    units_percent: int
    seders: list = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


def seed_masechtos():
    """Insert or refresh the reference list by name. Returns the number of new rows."""
    existing = {m.name: m for m in ShasMasechta.query.all()}
    added = 0
    for order, (seder, name, perakim, dafs) in enumerate(MASECHTOS, start=1):
        row = existing.get(name)
        if row is None:
            row = ShasMasechta(name=name)
            db.session.add(row)
            added += 1
        row.seder = seder
        row.perakim = perakim
        row.daf_count = dafs
        row.has_bavli = dafs is not None
        row.sort_order = order
    commit("seed shas_masechtos")
    if added:
        logger.info("Seeded %d masechtos", added)
    return added


def _check_type(completion_type):
    if completion_type not in COMPLETION_TYPES:
        raise ValidationError(f"Unknown completion type: {completion_type!r}")


def toggle_completion(masechta_id, completion_type, notes=None):
    """Flip the completion for (masechta, type). Returns True when now completed."""
    _check_type(completion_type)
    if db.session.get(ShasMasechta, masechta_id) is None:
        raise NotFound(f"Masechta #{masechta_id} not found")
    existing = ShasCompletion.query.filter_by(
        masechta_id=masechta_id, completion_type=completion_type
    ).first()
    if existing:
        db.session.delete(existing)
        done = False
    else:
        db.session.add(ShasCompletion(masechta_id=masechta_id,
                                      completion_type=completion_type, notes=notes))
        done = True
    commit("toggle shas completion")
    return done


def _percent(part, whole):
    return part / whole * 100 if whole > 0 else 0


def _tally(masechtos, done_ids, completion_type):
    total = len(masechtos)
    finished = [m for m in masechtos if m.id in done_ids]
    total_units = sum(m.units(completion_type) for m in masechtos)
    completed_units = sum(m.units(completion_type) for m in finished)
    return total, len(finished), total_units, completed_units


def compute_progress(masechtos, completions, completion_type):
    """Progress for one completion type over the given masechtos and completion rows.

    Gemara only counts masechtos that have a Bavli and weighs them by daf;
    mishnayos counts every masechta and weighs it by perakim.
    """
    _check_type(completion_type)
    done_ids = {c.masechta_id for c in completions if c.completion_type == completion_type}
    active = [m for m in masechtos if m.has_bavli] if completion_type == "gemara" else list(masechtos)

    total, completed, total_units, completed_units = _tally(active, done_ids, completion_type)
    progress = ShasProgress(
        completion_type=completion_type,
        unit_label=UNIT_LABELS[completion_type],
        total=total,
        completed=completed,
        total_units=total_units,
        completed_units=completed_units,
        percent=_percent(completed, total),
        units_percent=round(_percent(completed_units, total_units)),
    )
    for key, label in SEDERS:
        in_seder = [m for m in active if m.seder == key]
        if not in_seder:
            continue
        s_total, s_completed, s_units, s_done_units = _tally(in_seder, done_ids, completion_type)
        progress.seders.append(SederProgress(
            key=key, label=label,
            total=s_total, completed=s_completed,
            total_units=s_units, completed_units=s_done_units,
            percent=_percent(s_completed, s_total),
        ))
    return progress


def progress_summary(completion_type):
    masechtos = ShasMasechta.query.order_by(ShasMasechta.sort_order).all()
    completions = ShasCompletion.query.filter_by(completion_type=completion_type).all()
    return compute_progress(masechtos, completions, completion_type)


def masechtos_by_seder():
    """{seder key: [masechta dicts with completion flags]} in reference order."""
    done = {(c.masechta_id, c.completion_type) for c in ShasCompletion.query.all()}
    grouped = {key: [] for key, _ in SEDERS}
    for m in ShasMasechta.query.order_by(ShasMasechta.sort_order).all():
        row = m.to_dict()
        for ctype in COMPLETION_TYPES:
            row[f"{ctype}_done"] = (m.id, ctype) in done
        grouped.setdefault(m.seder, []).append(row)
    return grouped
