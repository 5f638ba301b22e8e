# tests/test_shas.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

import shas
from models import ShasMasechta
from repository import NotFound, ValidationError


def _masechta(id, seder, perakim, daf=None):
    m = SimpleNamespace(id=id, seder=seder, perakim=perakim, daf_count=daf, has_bavli=daf is not None)
    m.units = lambda ctype: (m.daf_count or 0) if ctype == "gemara" else m.perakim
    return m


def _done(*ids, ctype="gemara"):
    return [SimpleNamespace(masechta_id=i, completion_type=ctype) for i in ids]


def test_reference_list_shape() -> None:
    assert len(shas.MASECHTOS) == 63
    assert sum(1 for *_, daf in shas.MASECHTOS if daf is not None) == 40
    assert {seder for seder, *_ in shas.MASECHTOS} == {key for key, _ in shas.SEDERS}


def test_seed_is_idempotent(app) -> None:
    assert ShasMasechta.query.count() == 63
    assert shas.seed_masechtos() == 0
    assert ShasMasechta.query.count() == 63


def test_completed_seder_is_full() -> None:
    masechtos = [_masechta(1, "moed", 24, 156), _masechta(2, "moed", 8, 104),
                 _masechta(3, "nashim", 16, 121)]
    progress = shas.compute_progress(masechtos, _done(1, 2), "gemara")

    moed = next(s for s in progress.seders if s.key == "moed")
    assert moed.percent == 100
    assert progress.completed == 2
    assert progress.total == 3
    assert progress.percent == pytest.approx(200 / 3)
    assert progress.completed_units == 260
    assert progress.units_percent == round(260 / 381 * 100)


def test_gemara_skips_masechtos_without_bavli() -> None:
    masechtos = [_masechta(1, "zeraim", 9, 63), _masechta(2, "zeraim", 8)]

    gemara = shas.compute_progress(masechtos, [], "gemara")
    mishnayos = shas.compute_progress(masechtos, _done(2, ctype="mishnayos"), "mishnayos")

    assert gemara.total == 1
    assert mishnayos.total == 2
    assert mishnayos.completed_units == 8
    assert mishnayos.unit_label == "perakim"


def test_empty_seders_are_omitted() -> None:
    progress = shas.compute_progress([_masechta(1, "kodshim", 10, 100)], [], "gemara")
    assert [s.key for s in progress.seders] == ["kodshim"]
    assert progress.percent == 0


def test_double_toggle_is_identity(app) -> None:
    berachos = ShasMasechta.query.filter_by(name="Berachos").one()
    before = shas.progress_summary("gemara").completed

    assert shas.toggle_completion(berachos.id, "gemara") is True
    assert shas.progress_summary("gemara").completed == before + 1
    assert shas.toggle_completion(berachos.id, "gemara") is False
    assert shas.progress_summary("gemara").completed == before


def test_toggle_validates_input(app) -> None:
    with pytest.raises(ValidationError):
        shas.toggle_completion(1, "yerushalmi")
    with pytest.raises(NotFound):
        shas.toggle_completion(9999, "gemara")


def test_masechtos_by_seder_flags_completions(app) -> None:
    berachos = ShasMasechta.query.filter_by(name="Berachos").one()
    shas.toggle_completion(berachos.id, "mishnayos")

    zeraim = shas.masechtos_by_seder()["zeraim"]
    row = next(r for r in zeraim if r["name"] == "Berachos")
    assert row["mishnayos_done"] is True
    assert row["gemara_done"] is False
