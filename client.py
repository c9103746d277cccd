"""HTTP client for the API and the controller behind the management UI.

The controller keeps every piece of UI state in one ``UISessionState`` and
turns each user action into sequential API calls. Failures become error
notifications plus a logged diagnostic; rendering is left to the caller.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)

SECTIONS = ("dashboard", "students", "courses")


class ApiError(Exception):
    """Non-2xx answer from the API"""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ApiClient:
    """Thin wrapper exposing one method per API endpoint"""

    def __init__(self, http: httpx.Client):
        self.http = http

    @classmethod
    def connect(cls, base_url: str = "http://localhost:3000", timeout: float = 10.0) -> "ApiClient":
        return cls(httpx.Client(base_url=base_url, timeout=timeout))

    def _request(self, method: str, path: str, **kwargs):
        response = self.http.request(method, path, **kwargs)
        if response.is_error:
            try:
                message = response.json().get("message") or response.reason_phrase
            except ValueError:
                message = response.text or response.reason_phrase
            raise ApiError(response.status_code, message)
        return response.json()

    # Courses
    def list_courses(self, status: Optional[str] = None) -> List[dict]:
        params = {"status": status} if status else None
        return self._request("GET", "/courses", params=params)

    def get_course(self, course_id: str) -> dict:
        return self._request("GET", f"/courses/{course_id}")

    def create_course(self, data: dict) -> dict:
        return self._request("POST", "/courses", json=data)

    def update_course(self, course_id: str, data: dict) -> dict:
        return self._request("PUT", f"/courses/{course_id}", json=data)

    def delete_course(self, course_id: str) -> dict:
        return self._request("DELETE", f"/courses/{course_id}")

    # Students
    def list_students(self) -> List[dict]:
        return self._request("GET", "/students")

    def get_student(self, student_id: str) -> dict:
        return self._request("GET", f"/students/{student_id}")

    def search_students(self, term: str) -> List[dict]:
        return self._request("GET", "/students/search", params={"q": term})

    def create_student(self, data: dict) -> dict:
        return self._request("POST", "/students", json=data)

    def update_student(self, student_id: str, data: dict) -> dict:
        return self._request("PUT", f"/students/{student_id}", json=data)

    def delete_student(self, student_id: str) -> dict:
        return self._request("DELETE", f"/students/{student_id}")

    # Dashboard / health
    def dashboard_stats(self) -> dict:
        return self._request("GET", "/dashboard/stats")

    def health(self) -> dict:
        return self._request("GET", "/health")


@dataclass
class PendingDelete:
    kind: str  # "student" or "course"
    id: str


@dataclass
class UISessionState:
    current_section: str = "dashboard"
    editing_student_id: Optional[str] = None
    editing_course_id: Optional[str] = None
    pending_delete: Optional[PendingDelete] = None


@dataclass
class Notification:
    message: str
    level: str = "info"  # info, success, warning, error


class DashboardController:
    """UI flows: loading, navigation, forms, delete confirmation and search"""

    def __init__(self, client: ApiClient):
        self.client = client
        self.state = UISessionState()
        self.students: List[dict] = []
        self.courses: List[dict] = []
        self.course_options: List[dict] = []
        self.stats: Optional[dict] = None
        self.notifications: List[Notification] = []
        self.busy = False

    # Notifications
    def notify(self, message: str, level: str = "info"):
        self.notifications.append(Notification(message, level))

    def dismiss_notification(self, index: int):
        if 0 <= index < len(self.notifications):
            del self.notifications[index]

    def _fail(self, action: str, error: Exception):
        logger.error(f"Error {action}: {error}")
        message = error.message if isinstance(error, ApiError) else f"Error {action}"
        self.notify(message, "error")

    # Loading
    def load_courses(self) -> List[dict]:
        try:
            self.courses = self.client.list_courses()
            self.course_options = [course for course in self.courses if course["status"] == "active"]
        except (ApiError, httpx.HTTPError) as e:
            self._fail("loading courses", e)
            self.courses, self.course_options = [], []
        return self.courses

    def load_students(self) -> List[dict]:
        try:
            self.students = self.client.list_students()
        except (ApiError, httpx.HTTPError) as e:
            self._fail("loading students", e)
            self.students = []
        return self.students

    def refresh_stats(self) -> Optional[dict]:
        try:
            self.stats = self.client.dashboard_stats()
        except (ApiError, httpx.HTTPError) as e:
            self._fail("updating dashboard stats", e)
        return self.stats

    def initialize(self):
        """First load; without any course the user is sent to create one"""
        self.busy = True
        try:
            self.load_courses()
            if not self.courses:
                self.notify("Please add courses before managing students", "warning")
                self.navigate("courses")
                return
            self.load_students()
            self.refresh_stats()
        finally:
            self.busy = False

    def navigate(self, section: str):
        if section not in SECTIONS:
            raise ValueError(f"Unknown section: {section}")
        self.state.current_section = section
        if section == "courses":
            self.load_courses()
        else:
            self.load_students()
            self.refresh_stats()

    # Forms
    def start_edit_student(self, student_id: str):
        self.state.editing_student_id = student_id
        self.state.editing_course_id = None

    def start_edit_course(self, course_id: str):
        self.state.editing_course_id = course_id
        self.state.editing_student_id = None

    def cancel_edit(self):
        self.state.editing_student_id = None
        self.state.editing_course_id = None

    def submit_student(self, data: dict) -> bool:
        """Create, or update the student being edited; True on success"""
        self.busy = True
        try:
            if self.state.editing_student_id:
                self.client.update_student(self.state.editing_student_id, data)
                self.notify("Student updated successfully", "success")
            else:
                self.client.create_student(data)
                self.notify("Student created successfully", "success")
        except (ApiError, httpx.HTTPError) as e:
            self._fail("saving student data", e)
            return False
        finally:
            self.busy = False
        self.state.editing_student_id = None
        self.load_students()
        self.refresh_stats()
        return True

    def submit_course(self, data: dict) -> bool:
        """Create, or update the course being edited; True on success"""
        self.busy = True
        try:
            if self.state.editing_course_id:
                self.client.update_course(self.state.editing_course_id, data)
                self.notify("Course updated successfully", "success")
            else:
                self.client.create_course(data)
                self.notify("Course created successfully", "success")
        except (ApiError, httpx.HTTPError) as e:
            self._fail("saving course data", e)
            return False
        finally:
            self.busy = False
        self.state.editing_course_id = None
        self.load_courses()
        self.refresh_stats()
        return True

    # Deletes
    def request_delete(self, kind: str, record_id: str):
        if kind not in ("student", "course"):
            raise ValueError(f"Unknown record kind: {kind}")
        self.state.pending_delete = PendingDelete(kind, record_id)

    def cancel_delete(self):
        self.state.pending_delete = None

    def confirm_delete(self) -> bool:
        pending = self.state.pending_delete
        if pending is None:
            return False
        self.busy = True
        try:
            if pending.kind == "student":
                self.client.delete_student(pending.id)
                self.notify("Student deleted successfully!", "success")
                self.load_students()
            else:
                self.client.delete_course(pending.id)
                self.notify("Course deleted successfully!", "success")
                self.load_courses()
            self.refresh_stats()
            return True
        except (ApiError, httpx.HTTPError) as e:
            self._fail("deleting", e)
            return False
        finally:
            self.busy = False
            self.state.pending_delete = None

    def search(self, term: str) -> List[dict]:
        try:
            self.students = self.client.search_students(term)
        except (ApiError, httpx.HTTPError) as e:
            self._fail("searching students", e)
        return self.students
