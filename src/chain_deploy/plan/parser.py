"""YAML plan file parser."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from chain_deploy.plan.models import DeployableUnit, DeploymentPlan, NetworkConfig, PlanFile, WiringStep
from chain_deploy.utils.errors import ConfigurationError


class ConfigValidationError(ConfigurationError):
    """Exception raised when plan file validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.errors = errors or []
        super().__init__(message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


class PlanLoader:
    """Loads and validates a deployment plan file."""

    def __init__(self, plan_path: str):
        """Initialize plan loader.

        Args:
            plan_path: Path to the YAML plan file
        """
        self.plan_path = Path(plan_path)
        self.data: Dict = {}
        self.plan_file: Optional[PlanFile] = None

    def load(self) -> PlanFile:
        """Load and validate the plan file.

        Returns:
            Parsed plan file

        Raises:
            ConfigValidationError: If the file is invalid
            FileNotFoundError: If the file doesn't exist
        """
        if not self.plan_path.exists():
            raise FileNotFoundError(f"Plan file not found: {self.plan_path}")

        try:
            with open(self.plan_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError("Plan file must contain a mapping at the top level")

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Plan file validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self.plan_file = PlanFile(
            plan=DeploymentPlan(
                name=self.data["name"],
                units=[DeployableUnit(**unit) for unit in self.data.get("units") or []],
                wiring=[WiringStep(**step) for step in self.data.get("wiring") or []],
            ),
            artifacts=self.data.get("artifacts", "build/contracts"),
            networks=self._parse_networks(),
        )
        return self.plan_file

    def validate(self) -> List[Dict]:
        """Validate raw plan data against the schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if "name" not in self.data:
            errors.append({"loc": ["name"], "msg": "Required field 'name' is missing"})
        else:
            errors.extend(
                self._validate_item(DeploymentPlan, {"name": self.data["name"]}, [])
            )

        units = self.data.get("units")
        if units is None:
            errors.append({"loc": ["units"], "msg": "Required field 'units' is missing"})
        elif not isinstance(units, list) or len(units) == 0:
            errors.append({"loc": ["units"], "msg": "At least one unit must be defined"})
        else:
            for idx, unit_data in enumerate(units):
                errors.extend(self._validate_item(DeployableUnit, unit_data, ["units", idx]))

        wiring = self.data.get("wiring")
        if wiring is not None:
            if not isinstance(wiring, list):
                errors.append({"loc": ["wiring"], "msg": "Wiring must be a list"})
            else:
                for idx, step_data in enumerate(wiring):
                    errors.extend(self._validate_item(WiringStep, step_data, ["wiring", idx]))

        networks = self.data.get("networks")
        if networks is not None:
            if not isinstance(networks, dict):
                errors.append({"loc": ["networks"], "msg": "Networks must be a dictionary"})
            else:
                for network_name, network_data in networks.items():
                    errors.extend(
                        self._validate_item(
                            NetworkConfig,
                            {"name": network_name, **(network_data or {})},
                            ["networks", network_name],
                        )
                    )

        return errors

    def get_network(self, network_name: str) -> NetworkConfig:
        """Get settings for a network.

        Args:
            network_name: Network identifier

        Returns:
            Network configuration

        Raises:
            ConfigValidationError: If the network is not defined
        """
        if self.plan_file is None:
            self.load()

        if network_name not in self.plan_file.networks:
            available = ", ".join(self.plan_file.networks.keys()) or "none"
            raise ConfigValidationError(
                f"Network '{network_name}' not found. Available networks: {available}"
            )
        return self.plan_file.networks[network_name]

    def _validate_item(self, model, item_data, location: List) -> List[Dict]:
        """Validate one list/dict entry against a model."""
        if not isinstance(item_data, dict):
            return [{"loc": location, "msg": "Entry must be a mapping"}]
        try:
            model(**item_data)
        except ValidationError as e:
            return [
                {"loc": location + list(error["loc"]), "msg": error["msg"]}
                for error in e.errors()
            ]
        return []

    def _parse_networks(self) -> Dict[str, NetworkConfig]:
        """Parse network configurations."""
        networks = {}
        for network_name, network_data in (self.data.get("networks") or {}).items():
            networks[network_name] = NetworkConfig(name=network_name, **(network_data or {}))
        return networks


def load_plan(plan_path: str) -> PlanFile:
    """Load a plan file.

    Args:
        plan_path: Path to the YAML plan file

    Returns:
        Parsed plan file
    """
    return PlanLoader(plan_path).load()
