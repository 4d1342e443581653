# tests/core/engine/test_planner.py
"""
Testes do planejamento de execução.

Os testes asseguram que:
- a seleção respeita object_ids, filtros de módulo e flags de exclusão
- pré-requisitos registrados sempre entram no plano (dependências vencem filtros)
- ondas preservam a ordem de inserção do registry
- erros de programação levantam exceções tipadas

Limites explícitos:
    - Não executa objetos (coberto em test_orchestrator.py)
"""

import pytest

try:
    from etlv_orchestrator.core.engine.planner import RunOptions, plan_execution
    from etlv_orchestrator.core.exceptions import PlannerBadOptions, PlannerUnknownObject
    from etlv_orchestrator.core.pipeline.migration_object import BaseMigrationObject
    from etlv_orchestrator.core.pipeline.registry import ObjectRegistry
except Exception as e:  # noqa: BLE001
    plan_execution = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing planner modules. Implement:\n"
            "- src/etlv_orchestrator/core/engine/planner.py (RunOptions, plan_execution)\n"
            "- src/etlv_orchestrator/core/pipeline/registry.py (ObjectRegistry)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def _registry(*specs):
    """Cada spec é (object_id, module, depends_on)."""
    reg = ObjectRegistry()
    for object_id, module, deps in specs:
        reg.register(BaseMigrationObject(object_id=object_id, module=module, depends_on=deps))
    return reg


def test_selective_include_pulls_prerequisite_first():
    _require_imports()
    specs = [("GL_ACCOUNT_MASTER", "FI", []), ("GL_BALANCE", "FI", ["GL_ACCOUNT_MASTER"])]
    specs += [(f"UNRELATED_{i}", "MM", []) for i in range(10)]
    reg = _registry(*specs)

    plan = plan_execution(reg, RunOptions(object_ids=["GL_BALANCE"]))

    assert plan.object_ids == ["GL_ACCOUNT_MASTER", "GL_BALANCE"]
    assert plan.waves == [["GL_ACCOUNT_MASTER"], ["GL_BALANCE"]]
    assert plan.added_prerequisites == ["GL_ACCOUNT_MASTER"]


def test_default_plan_covers_every_registered_object():
    _require_imports()
    reg = _registry(("A", "FI", []), ("B", "FI", ["A"]), ("C", "CO", ["A"]), ("D", "CO", ["B", "C"]))
    plan = plan_execution(reg)

    assert plan.waves == [["A"], ["B", "C"], ["D"]]
    assert sum(len(w) for w in plan.waves) == len(reg)
    assert plan.validation["valid"] is True


def test_wave_preserves_registry_insertion_order():
    _require_imports()
    reg = _registry(("C", "", []), ("A", "", []), ("B", "", []))
    assert plan_execution(reg).waves == [["C", "A", "B"]]


def test_empty_subset_has_no_waves():
    _require_imports()
    reg = _registry(("A", "FI", []))
    plan = plan_execution(reg, RunOptions(object_ids=[]))
    assert plan.object_ids == []
    assert plan.waves == []


def test_unknown_object_id_raises():
    _require_imports()
    reg = _registry(("A", "FI", []))
    with pytest.raises(PlannerUnknownObject) as exc:
        plan_execution(reg, RunOptions(object_ids=["A", "NOPE"]))
    assert exc.value.details == {"object_ids": ["NOPE"]}
    assert exc.value.to_payload().type == "ERR_PLANNER_UNKNOWN_OBJECT"


def test_module_filters_are_case_insensitive_include_then_exclude():
    _require_imports()
    reg = _registry(("A", "FI", []), ("B", "CO", []), ("C", "MM", []), ("D", "fi", []))

    plan = plan_execution(reg, RunOptions(include_modules=["fi", "co"], exclude_modules=["Co"]))

    assert plan.object_ids == ["A", "D"]
    assert plan.excluded == ["B", "C"]


def test_exclude_objects_is_subtracted():
    _require_imports()
    reg = _registry(("A", "FI", []), ("B", "FI", []))
    plan = plan_execution(reg, RunOptions(exclude_objects=["B"]))
    assert plan.object_ids == ["A"]


def test_config_and_interface_flags():
    _require_imports()
    reg = _registry(("COMPANY_CONFIG", "FI", []), ("RFC_DESTINATION", "BASIS", []), ("GL_ACCOUNT_MASTER", "FI", []))

    plan = plan_execution(reg, RunOptions(include_config=False, include_interfaces=False))
    assert plan.object_ids == ["GL_ACCOUNT_MASTER"]

    plan = plan_execution(reg, RunOptions())
    assert plan.object_ids == ["COMPANY_CONFIG", "RFC_DESTINATION", "GL_ACCOUNT_MASTER"]


def test_dependencies_trump_filters():
    """Pré-requisito excluído por módulo volta ao plano pela clausura."""
    _require_imports()
    reg = _registry(("MATERIAL_MASTER", "MM", []), ("SALES_ORDER", "SD", ["MATERIAL_MASTER"]))

    plan = plan_execution(reg, RunOptions(include_modules=["SD"]))

    assert plan.waves == [["MATERIAL_MASTER"], ["SALES_ORDER"]]
    assert plan.added_prerequisites == ["MATERIAL_MASTER"]
    assert plan.excluded == []


def test_unregistered_prerequisite_is_not_added_but_reported():
    _require_imports()
    reg = _registry(("GL_BALANCE", "FI", ["GHOST"]))
    plan = plan_execution(reg)

    assert plan.object_ids == ["GL_BALANCE"]
    assert plan.validation["valid"] is False
    assert plan.validation["issues"] == [{"object_id": "GL_BALANCE", "missing_dependency": "GHOST"}]


def test_plan_to_dict_is_plain_data():
    _require_imports()
    reg = _registry(("A", "FI", []), ("B", "FI", ["A"]))
    data = plan_execution(reg).to_dict()
    assert data["waves"] == [["A"], ["B"]]
    assert set(data) == {"object_ids", "waves", "added_prerequisites", "excluded", "validation"}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"object_ids": "GL_BALANCE"},
        {"include_modules": [""]},
        {"exclude_objects": [1]},
        {"parallel": "yes"},
        {"include_config": 1},
        {"max_workers": 0},
        {"max_workers": True},
        {"on_progress": 5},
    ],
)
def test_malformed_options_raise(kwargs):
    _require_imports()
    with pytest.raises(PlannerBadOptions) as exc:
        RunOptions(**kwargs)
    assert exc.value.details["option"] == next(iter(kwargs))


def test_options_from_config_and_overrides(dummy_config):
    _require_imports()
    opts = RunOptions.from_config(dummy_config)
    assert opts.parallel is False
    assert opts.max_workers == 4

    opts = RunOptions.from_config(dummy_config, parallel=True, object_ids=None)
    assert opts.parallel is True
    assert opts.object_ids is None


def test_options_from_config_rejects_unknown_override(dummy_config):
    _require_imports()
    with pytest.raises(PlannerBadOptions):
        RunOptions.from_config(dummy_config, fail_fast=True)


def test_long_prerequisite_chain_plans_without_recursion_limit():
    _require_imports()
    ids = [f"O_{i}" for i in range(2000)]
    reg = _registry(*[(oid, "FI", [ids[i - 1]] if i else []) for i, oid in enumerate(ids)])

    plan = plan_execution(reg, RunOptions(object_ids=[ids[-1]]))

    assert plan.object_ids == ids
    assert len(plan.waves) == 2000
    assert set(plan.added_prerequisites) == set(ids[:-1])
