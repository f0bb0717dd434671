"""
Tests for ML pipeline module.
"""

import numpy as np
import pandas as pd
import pytest
from pydantic import ValidationError

from bike_demand.config import Settings, override_settings
from bike_demand.data_pipeline.schema import HOLIDAY_LEVELS
from bike_demand.data_pipeline.splitting import FoldAssignment, stratified_folds, stratified_split
from bike_demand.exceptions import FitFailureError, TuningDegenerateError
from bike_demand.ml_pipeline.evaluation import ModelEvaluator
from bike_demand.ml_pipeline.models import (
    BaggedTreeModel,
    DecisionTreeModel,
    LassoModel,
    LinearRegressionModel,
    RandomForestModel,
    get_model,
)
from bike_demand.ml_pipeline.pipeline import run_pipeline
from bike_demand.ml_pipeline.training import ModelTrainer
from bike_demand.ml_pipeline.tuning import GridTuner, MetricRecord, TuningResult, expand_grid
from bike_demand.ml_pipeline.workflow import ModelWorkflow

from conftest import make_daily_data, season_of


class TestModels:
    """Tests for regression models."""

    @pytest.fixture
    def sample_data(self):
        """Create sample training data."""
        rng = np.random.default_rng(0)
        n = 200
        X = pd.DataFrame({
            "temperature": rng.normal(0, 1, n),
            "humidity": rng.normal(0, 1, n),
            "rainfall": rng.normal(0, 1, n),
            "season_Summer": rng.integers(0, 2, n).astype(float),
        })
        y = pd.Series(1000 + 300 * X["temperature"] - 50 * X["humidity"] + rng.normal(0, 20, n))
        return X, y

    @pytest.mark.parametrize("model_type,params", [
        ("linear", {}),
        ("lasso", {"penalty": 0.1}),
        ("decision_tree", {"cost_complexity": 0.001, "tree_depth": 4}),
        ("bagged_tree", {"cost_complexity": 0.001, "tree_depth": 4, "n_trees": 5}),
        ("random_forest", {"mtry": 2, "n_trees": 10}),
    ])
    def test_fit_predict(self, sample_data, model_type, params):
        """Every family fits, predicts and reports importances."""
        X, y = sample_data

        model = get_model(model_type, **params)
        model.fit(X, y)

        assert model.is_fitted
        predictions = model.predict(X[:10])
        assert len(predictions) == 10

        importance = model.feature_importance()
        assert set(importance) == set(X.columns)
        assert all(v >= 0 for v in importance.values())

    def test_importance_ranks_strongest_feature(self, sample_data):
        """Temperature drives the target, so it ranks first."""
        X, y = sample_data

        for model in (LinearRegressionModel(), RandomForestModel(mtry=2, n_trees=20)):
            model.fit(X, y)
            top = next(iter(model.get_feature_importance(top_n=1)))
            assert top == "temperature"

    def test_lasso_penalty_shrinks_coefficients(self, sample_data):
        """A large penalty zeroes every coefficient."""
        X, y = sample_data

        model = LassoModel(penalty=1e6).fit(X, y)
        assert all(v == 0 for v in model.feature_importance().values())

    def test_get_model_factory(self):
        """Test model factory function."""
        assert isinstance(get_model("linear"), LinearRegressionModel)
        assert isinstance(get_model("lasso", penalty=0.5), LassoModel)
        assert isinstance(get_model("decision_tree"), DecisionTreeModel)
        assert isinstance(get_model("bagged_tree"), BaggedTreeModel)
        assert isinstance(get_model("random_forest", mtry=2), RandomForestModel)

    def test_get_model_invalid_type(self):
        """Test model factory with invalid type."""
        with pytest.raises(ValueError):
            get_model("invalid_model")

    def test_predict_before_fit(self, sample_data):
        """Predicting with an unfitted model is an error."""
        X, _ = sample_data
        with pytest.raises(ValueError):
            LinearRegressionModel().predict(X)

    def test_fit_failure_wrapped(self, sample_data):
        """Estimator errors surface as FitFailureError."""
        X, y = sample_data
        with pytest.raises(FitFailureError):
            RandomForestModel(mtry=50, n_trees=5).fit(X, y)

    def test_complexity_ordering(self):
        """Simpler tuples sort first."""
        assert LassoModel.complexity_key({"penalty": 1.0}) < LassoModel.complexity_key({"penalty": 0.1})
        assert DecisionTreeModel.complexity_key(
            {"tree_depth": 2, "cost_complexity": 0.01}
        ) < DecisionTreeModel.complexity_key({"tree_depth": 8, "cost_complexity": 0.01})
        assert BaggedTreeModel.complexity_key(
            {"tree_depth": 4, "cost_complexity": 0.1}
        ) < BaggedTreeModel.complexity_key({"tree_depth": 4, "cost_complexity": 0.001})
        assert RandomForestModel.complexity_key({"mtry": 1}) < RandomForestModel.complexity_key({"mtry": 5})


class TestModelEvaluator:
    """Tests for model evaluation."""

    def test_mae(self):
        """Test MAE calculation."""
        evaluator = ModelEvaluator()

        y_true = np.array([100, 200, 300])
        y_pred = np.array([110, 190, 310])

        metrics = evaluator.evaluate(y_true, y_pred)

        assert "mae" in metrics
        assert abs(metrics["mae"] - 10.0) < 0.01

    def test_rmse(self):
        """Test RMSE calculation."""
        evaluator = ModelEvaluator()

        y_true = np.array([100, 200, 300])
        y_pred = np.array([100, 200, 300])
        assert evaluator.evaluate(y_true, y_pred)["rmse"] == 0.0

        y_pred = np.array([103, 196, 300])
        assert evaluator.score(y_true, y_pred, "rmse") == pytest.approx(np.sqrt(25 / 3))

    def test_r2(self):
        """Test R² calculation."""
        evaluator = ModelEvaluator()

        y_true = np.array([100, 200, 300, 400, 500])
        metrics = evaluator.evaluate(y_true, y_true.copy())

        assert metrics["r2"] == pytest.approx(1.0)

    def test_length_mismatch(self):
        """Arrays of different length cannot be compared."""
        with pytest.raises(ValueError):
            ModelEvaluator().evaluate(np.array([1, 2]), np.array([1]))

    def test_unknown_metric(self):
        """Only rmse and mae can drive tuning."""
        with pytest.raises(ValueError):
            ModelEvaluator().score(np.array([1.0]), np.array([1.0]), "r2")

    def test_compare_models(self):
        """Models are ranked by RMSE, best first."""
        evaluator = ModelEvaluator()

        y_true = np.array([100.0, 200.0, 300.0, 400.0])
        predictions = {
            "model_a": y_true + 50,
            "model_b": y_true + 5,
            "model_c": y_true + 20,
        }

        comparison = evaluator.compare_models(y_true, predictions)

        assert list(comparison.index) == ["model_b", "model_c", "model_a"]
        assert list(comparison["rmse_rank"]) == [1.0, 2.0, 3.0]


class TestGridTuner:
    """Tests for cross-validated grid search."""

    @pytest.fixture
    def train_and_folds(self, daily_data):
        split = stratified_split(daily_data, seed=5)
        return split.train, stratified_folds(split.train, n_folds=3, seed=5)

    def test_expand_grid(self):
        """Grids expand to the full cartesian product."""
        grid = expand_grid({"tree_depth": [1, 2, 3], "cost_complexity": [0.1, 0.01]})
        assert len(grid) == 6
        assert expand_grid({}) == [{}]

    def test_one_record_per_tuple_and_fold(self, train_and_folds):
        """Every tuple is scored on every fold."""
        train, folds = train_and_folds
        tuner = GridTuner("lasso", {"penalty": [0.01, 1.0, 100.0]})

        result = tuner.tune(train, folds)

        assert len(result.records) == 3 * folds.n_folds
        assert {r.fold for r in result.records} == {"Fold01", "Fold02", "Fold03"}
        metrics = result.collect_metrics()
        assert (metrics["n"] == folds.n_folds).all()
        assert metrics["eligible"].all()
        assert (metrics["mean"] > 0).all()

    def test_mean_matches_fold_scores(self, train_and_folds):
        """The aggregated mean is the average of the fold scores."""
        train, folds = train_and_folds
        result = GridTuner("linear").tune(train, folds)

        values = [r.value for r in result.records]
        metrics = result.collect_metrics()
        assert metrics.loc[0, "mean"] == pytest.approx(np.mean(values))
        assert metrics.loc[0, "std_err"] == pytest.approx(
            np.std(values, ddof=1) / np.sqrt(len(values))
        )

    def test_single_tuple_selected(self, train_and_folds):
        """A grid of one tuple selects that tuple."""
        train, folds = train_and_folds
        grid = {"cost_complexity": [0.01], "tree_depth": [3]}

        result = GridTuner("decision_tree", grid, fixed_params={"min_n": 5}).tune(train, folds)

        assert result.select_best() == {"cost_complexity": 0.01, "tree_depth": 3}

    def test_linear_selects_empty_tuple(self, train_and_folds):
        """The linear model has nothing to tune."""
        train, folds = train_and_folds
        assert GridTuner("linear").tune(train, folds).select_best() == {}

    def test_fold_count_does_not_change_tuples(self, daily_data):
        """Changing k changes the per-tuple fold count only."""
        grid = {"cost_complexity": [0.001, 0.01], "tree_depth": [2, 3]}
        tuner = GridTuner("decision_tree", grid, fixed_params={"min_n": 5})

        evaluated = []
        for k in (2, 4):
            folds = stratified_folds(daily_data, n_folds=k, seed=1)
            metrics = tuner.tune(daily_data, folds).collect_metrics()
            assert (metrics["n"] == k).all()
            evaluated.append(set(zip(metrics["cost_complexity"], metrics["tree_depth"])))

        assert evaluated[0] == evaluated[1]
        assert len(evaluated[0]) == 4

    def test_failed_tuple_ineligible(self, train_and_folds):
        """A tuple failing on every fold cannot be selected."""
        train, folds = train_and_folds
        tuner = GridTuner(
            "random_forest",
            {"mtry": [2, 50]},
            fixed_params={"min_n": 5, "n_trees": 5},
        )

        result = tuner.tune(train, folds)
        metrics = result.collect_metrics().set_index("mtry")

        assert metrics.loc[50, "n_failed"] == folds.n_folds
        assert not metrics.loc[50, "eligible"]
        assert np.isnan(metrics.loc[50, "mean"])
        assert all(r.error for r in result.records if dict(r.params)["mtry"] == 50)
        assert result.select_best() == {"mtry": 2}

    def test_unseen_level_counts_as_failed_fold(self):
        """A level present only in one assessment fold fails that fold alone."""
        data = make_daily_data(n_days=60, seed=3)
        data["holiday"] = pd.Categorical(["No Holiday"] * len(data), categories=HOLIDAY_LEVELS)
        data.loc[7, "holiday"] = "Holiday"
        folds = stratified_folds(data, n_folds=3, seed=3)
        holiday_fold = next(
            FoldAssignment.fold_id(i)
            for i, (_, assessment) in enumerate(folds)
            if 7 in assessment
        )

        result = GridTuner("linear").tune(data, folds)
        metrics = result.collect_metrics()

        assert metrics.loc[0, "n"] == 2
        assert metrics.loc[0, "n_failed"] == 1
        assert metrics.loc[0, "eligible"]
        failed = [r for r in result.records if r.failed]
        assert [r.fold for r in failed] == [holiday_fold]
        assert "holiday" in failed[0].error
        assert "Holiday" in failed[0].error
        assert result.select_best() == {}

    def test_all_tuples_degenerate(self, train_and_folds):
        """Selection fails when no tuple is eligible."""
        train, folds = train_and_folds
        tuner = GridTuner("random_forest", {"mtry": [50]}, fixed_params={"n_trees": 5})

        result = tuner.tune(train, folds)

        with pytest.raises(TuningDegenerateError):
            result.select_best()
        assert result.show_best().empty

    def test_parallel_matches_sequential(self, train_and_folds):
        """Worker count does not change the scores."""
        train, folds = train_and_folds
        grid = {"penalty": [0.1, 10.0]}

        sequential = GridTuner("lasso", grid, n_jobs=1).tune(train, folds)
        parallel = GridTuner("lasso", grid, n_jobs=2).tune(train, folds)

        assert [r.value for r in sequential.records] == pytest.approx(
            [r.value for r in parallel.records]
        )


class TestTuningResult:
    """Tests for aggregation and selection on hand-built records."""

    @staticmethod
    def _records(model_type, grid, values_per_config):
        records = []
        for config, values in enumerate(values_per_config):
            key = tuple(sorted(grid[config].items()))
            for i, value in enumerate(values):
                error = "failed" if value is None else None
                records.append(MetricRecord(
                    model_type, config, key, f"Fold{i + 1:02d}", "rmse",
                    np.nan if value is None else value, error,
                ))
        return records

    def test_tie_broken_by_simpler_model(self):
        """Equal means select the shallower tree."""
        grid = [
            {"cost_complexity": 0.01, "tree_depth": 8},
            {"cost_complexity": 0.01, "tree_depth": 2},
            {"cost_complexity": 0.01, "tree_depth": 4},
        ]
        records = self._records("decision_tree", grid, [[1.0, 2.0], [2.0, 1.0], [3.0, 3.0]])
        result = TuningResult("decision_tree", grid, records, n_folds=2)

        assert result.select_best() == {"cost_complexity": 0.01, "tree_depth": 2}
        assert list(result.show_best(2)["tree_depth"]) == [2, 8]

    def test_tie_broken_by_larger_penalty(self):
        """Equal LASSO means select the larger penalty."""
        grid = [{"penalty": 0.001}, {"penalty": 0.1}]
        records = self._records("lasso", grid, [[5.0, 5.0], [5.0, 5.0]])
        result = TuningResult("lasso", grid, records, n_folds=2)

        assert result.select_best() == {"penalty": 0.1}

    def test_half_failed_folds_ineligible(self):
        """Failing on half of the folds removes the tuple from selection."""
        grid = [{"mtry": 1}, {"mtry": 2}]
        records = self._records(
            "random_forest", grid,
            [[9.0, 9.0, 9.0, 9.0], [1.0, 1.0, None, None]],
        )
        result = TuningResult("random_forest", grid, records, n_folds=4)
        metrics = result.collect_metrics()

        assert metrics.loc[1, "mean"] == pytest.approx(1.0)
        assert metrics.loc[1, "n"] == 2
        assert not metrics.loc[1, "eligible"]
        assert result.select_best() == {"mtry": 1}

    def test_minority_failures_still_eligible(self):
        """A tuple failing on fewer than half of the folds is averaged over the rest."""
        grid = [{"mtry": 1}, {"mtry": 2}]
        records = self._records(
            "random_forest", grid,
            [[9.0, 9.0, 9.0, 9.0], [1.0, 2.0, 3.0, None]],
        )
        result = TuningResult("random_forest", grid, records, n_folds=4)
        metrics = result.collect_metrics()

        assert metrics.loc[1, "mean"] == pytest.approx(2.0)
        assert metrics.loc[1, "n_failed"] == 1
        assert metrics.loc[1, "eligible"]
        assert result.select_best() == {"mtry": 2}


def make_linear_data(n_days: int = 20, seed: int = 0) -> pd.DataFrame:
    """Target = 3 x temperature + tiny noise, all other covariates constant."""
    rng = np.random.default_rng(seed)
    # 18-day spacing spreads 20 rows evenly over the four seasons
    dates = pd.date_range("2018-01-01", periods=n_days, freq="18D")
    temperature = rng.uniform(-10, 30, n_days)

    return pd.DataFrame({
        "date": dates,
        "season": pd.Categorical(
            [season_of(m) for m in dates.month],
            categories=["Spring", "Summer", "Autumn", "Winter"],
        ),
        "holiday": pd.Categorical(["No Holiday"] * n_days, categories=["Holiday", "No Holiday"]),
        "bike_count": 3 * temperature + rng.normal(0, 0.01, n_days),
        "rainfall": 0.0,
        "snowfall": 0.0,
        "temperature": temperature,
        "humidity": 50.0,
        "wind_speed": 1.5,
        "visibility": 2000.0,
        "dew_point_temperature": -5.0,
        "solar_radiation": 0.5,
    })


def small_settings(**overrides) -> Settings:
    """Settings with grids small enough for unit tests."""
    values = {
        "seed": 42,
        "cv_folds": 3,
        "lasso_levels": 4,
        "tree_cost_complexity_levels": 2,
        "tree_depths": [2, 4],
        "forest_mtry": [2, 4],
        "bagged_n_trees": 5,
        "forest_n_trees": 10,
    }
    values.update(overrides)
    return Settings(**values)


class TestModelTrainer:
    """Tests for the held-out evaluation and final refit."""

    def test_last_fit_scores_test_set(self, daily_data):
        """last_fit predicts every test row once."""
        split = stratified_split(daily_data, seed=2)
        result = ModelTrainer(seed=2).last_fit(split, "lasso", {"penalty": 0.1})

        assert len(result.predictions) == len(split.test)
        assert result.workflow.n_train == len(split.train)
        assert result.metrics["rmse"] > 0
        assert result.params == {"penalty": 0.1}

    def test_linear_beats_tree_on_linear_data(self):
        """With a noiseless linear signal, OLS has lower test RMSE than a tree."""
        data = make_linear_data()
        split = stratified_split(data, train_fraction=0.75, seed=1)
        trainer = ModelTrainer(seed=1)

        linear = trainer.last_fit(split, "linear")
        tree = trainer.last_fit(split, "decision_tree", {"cost_complexity": 0.01, "tree_depth": 5})

        assert linear.metrics["rmse"] < tree.metrics["rmse"]
        assert linear.metrics["rmse"] < 1.0

    def test_finalize_uses_all_rows_and_same_params(self, daily_data):
        """The final fit sees train and test but keeps the hyperparameters."""
        split = stratified_split(daily_data, seed=3)
        trainer = ModelTrainer(fixed_params={"decision_tree": {"min_n": 5}}, seed=3)
        params = {"cost_complexity": 0.001, "tree_depth": 4}

        evaluated = trainer.last_fit(split, "decision_tree", params)
        final = trainer.finalize(split, "decision_tree", params)

        assert final.params == evaluated.params == params
        assert final.model.get_params() == evaluated.workflow.model.get_params()
        assert final.n_train == len(daily_data)
        assert evaluated.workflow.n_train == len(split.train)

    def test_save_and_load_workflow(self, daily_data, tmp_path):
        """A saved workflow predicts identically after loading."""
        split = stratified_split(daily_data, seed=4)
        trainer = ModelTrainer(seed=4, model_dir=tmp_path)
        workflow = trainer.finalize(split, "lasso", {"penalty": 1.0})

        path = trainer.save_model(workflow)
        loaded = ModelWorkflow.load(path)

        assert path.parent == tmp_path
        np.testing.assert_array_almost_equal(
            workflow.predict(daily_data.head(10)),
            loaded.predict(daily_data.head(10)),
        )

    def test_save_without_destination(self, daily_data):
        """Saving needs either a path or a model directory."""
        split = stratified_split(daily_data, seed=4)
        trainer = ModelTrainer(seed=4)
        workflow = trainer.finalize(split, "linear")

        with pytest.raises(ValueError):
            trainer.save_model(workflow)


class TestPipeline:
    """End-to-end tests of the model comparison."""

    def test_settings_grids(self):
        """Default grids have the documented sizes."""
        settings = Settings()

        assert expand_grid(settings.param_grid("linear")) == [{}]
        assert len(expand_grid(settings.param_grid("lasso"))) == 200
        assert len(expand_grid(settings.param_grid("decision_tree"))) == 15
        assert len(expand_grid(settings.param_grid("random_forest"))) == 11
        with pytest.raises(ValueError):
            settings.param_grid("svm")

    def test_overrides_are_validated(self):
        """Overrides go through field validation; None leaves a field as is."""
        base = Settings(seed=7)

        updated = override_settings(base, cv_folds=5, seed=None)
        assert updated.cv_folds == 5
        assert updated.seed == 7

        with pytest.raises(ValidationError):
            override_settings(base, cv_folds=1)
        with pytest.raises(ValidationError):
            override_settings(base, train_fraction=1.5)

    def test_run_pipeline(self):
        """Every family is tuned and ranked; the winner is refit on all data."""
        data = make_daily_data(seed=1)
        settings = small_settings()

        result = run_pipeline(settings, data=data)

        assert set(result.tuning) == set(settings.model_types)
        assert list(result.test_metrics["rmse"]) == sorted(result.test_metrics["rmse"])
        assert result.best_model_type == result.test_metrics.index[0]
        assert result.final_model.model_type == result.best_model_type
        assert result.final_model.params == result.best_params
        assert result.final_model.n_train == len(data)
        assert len(result.final_model.predict(data)) == len(data)

    def test_pipeline_is_reproducible(self):
        """Same seed, same input: same selections and the same test RMSEs."""
        data = make_daily_data(seed=2)
        settings = small_settings()

        first = run_pipeline(settings, data=data)
        second = run_pipeline(settings, data=data)

        assert first.selected_params == second.selected_params
        assert first.best_model_type == second.best_model_type
        pd.testing.assert_series_equal(first.test_metrics["rmse"], second.test_metrics["rmse"])
