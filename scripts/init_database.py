#!/usr/bin/env python3
# Copyright (c) Microsoft. All rights reserved.
# Licensed under the MIT license.
# See LICENSE file in the project root for full license information.

"""Script to create the Users and Images tables for local development."""

import os
import sys

from dotenv import load_dotenv

from image_pipeline.connection_factory import SqlConnectionFactory, create_schema


def init_database() -> bool:
    """Create the tables in the database named by DATABASE_URL."""
    load_dotenv()
    database_url = os.environ.get('DATABASE_URL')

    if not database_url:
        print("ERROR: DATABASE_URL environment variable not set")
        return False

    connection_factory = SqlConnectionFactory(database_url)
    try:
        create_schema(connection_factory)
        print("✅ Users and Images tables are ready")
        return True
    except Exception as e:
        print(f"❌ Error creating tables: {e}")
        return False
    finally:
        connection_factory.dispose()


if __name__ == "__main__":
    success = init_database()
    sys.exit(0 if success else 1)
