from __future__ import annotations

from src.department_chat.department_chat.core.enums import Role
from src.department_chat.department_chat.directory.mysql_directory import MySQLDirectory


class _Cursor:
    def __init__(self, row):
        self.row = row
        self.executed = []

    def execute(self, sql, params=None):
        self.executed.append((sql, params))

    def fetchone(self):
        return self.row

    def close(self):
        pass


class _Conn:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self, dictionary=False):
        return self._cursor

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        pass


class _Factory:
    def __init__(self, row):
        self.cursor = _Cursor(row)

    def connect(self):
        return _Conn(self.cursor)


def test_get_member_reads_department_name():
    factory = _Factory({"user_id": 2, "full_name": "Bruno Lima", "role": "staff", "is_active": 1, "dept_name": "Jurídico"})

    member = MySQLDirectory(factory).get_member(2)

    assert member.user_id == 2
    assert member.role == Role.STAFF
    assert member.department == "Jurídico"
    assert member.is_active is True
    assert factory.cursor.executed[0][1] == (2,)


def test_get_member_without_department():
    factory = _Factory({"user_id": 5, "full_name": "Eva", "role": "admin", "is_active": 0, "dept_name": None})

    member = MySQLDirectory(factory).get_member(5)

    assert member.department is None
    assert member.role == Role.ADMIN
    assert member.is_active is False


def test_get_member_missing():
    assert MySQLDirectory(_Factory(None)).get_member(9) is None
