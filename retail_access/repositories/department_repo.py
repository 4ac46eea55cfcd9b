"""Department repository."""

from typing import List, Optional

from retail_access.constants.hierarchy import DepartmentType
from retail_access.models.department import Department
from retail_access.repositories.base_repo import BaseRepository


class DepartmentRepository(BaseRepository[Department]):
    """Departments of one organization."""

    def _get_model_class(self) -> type[Department]:
        return Department

    def find_by_type(self, department_type: DepartmentType) -> Optional[Department]:
        return (
            self._query()
            .filter(Department.department_type == DepartmentType(department_type))
            .first()
        )

    def get_all_active(self) -> List[Department]:
        return self._query().filter(Department.is_active.is_(True)).all()

    def get_active_types(self) -> frozenset[DepartmentType]:
        return frozenset(DepartmentType(d.department_type) for d in self.get_all_active())
