"""Turn a cluster into an ordered, time-stamped stop list."""
from typing import List

from ..configurations.config import Config
from ..models.route import Cluster, RouteStop
from ..models.school import School, shift_time


def estimated_arrival(school: School, lead_minutes: float):
    return shift_time(school.dismissal_time, -lead_minutes)


def sequence_schools(schools: List[School], lead_minutes: float = None) -> List[RouteStop]:
    """Order schools by dismissal time and stamp each stop's estimated arrival."""
    if lead_minutes is None:
        lead_minutes = Config.ARRIVAL_LEAD_MINUTES

    if len(schools) <= 1:
        ordered = list(schools)
    else:
        # sorted() is stable: equal dismissal times keep the clustering order
        ordered = sorted(schools, key=lambda school: school.dismissal_time)

    return [
        RouteStop(
            school=school,
            order_index=index,
            estimated_arrival_time=estimated_arrival(school, lead_minutes),
        )
        for index, school in enumerate(ordered)
    ]


def sequence_cluster(cluster: Cluster, lead_minutes: float = None) -> List[RouteStop]:
    return sequence_schools(cluster.schools, lead_minutes)
