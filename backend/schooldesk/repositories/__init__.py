"""
SchoolDesk Backend — Repositories Package
===========================================

Persistence layer. SchoolService depends only on `SchoolRepository`; the
composition root picks one implementation from DATABASE_BACKEND:

- sql.SQLSchoolRepository:     async SQLAlchemy (PostgreSQL / SQLite)
- mongo.MongoSchoolRepository: pymongo (MongoDB)
"""
