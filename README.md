# mysqlpool

Separate read and write MySQL connection pools, with a small chainable query
builder for SELECT, INSERT, UPDATE and INSERT ... ON DUPLICATE KEY UPDATE
statements. Statements slower than 20 ms are written to an action log.

## Installation

```
pip install mysqlpool
```

## Opening pools

```python
from mysqlpool.config import Config, ConfigList
from mysqlpool.pool import open_pools

password = "password"
config = ConfigList(
    read=Config(host="localhost", user="user", password=password),
    write=None,  # the write pool reuses the read settings
    log_path="./logs/mysqlpool",
)

pools = open_pools(config)
```

`open_pools` opens one connection to each server to check it can be reached,
and raises `mysqlpool.pool.PoolError` if it cannot. Passing `None` raises
`ValueError`.

Settings left unset in a `Config` fall back to these defaults (see
`Config.with_defaults()`): host `localhost`, port `3306`, user `root`,
charset `utf8mb4`, 4 connections per pool. Each pool keeps up to half of its
connections idle, and a connection is replaced after an hour.

The log files `init.log` and `action.log` are written under `log_path`, which
defaults to `./logs/mysqlpool`; every log line is also echoed to stdout.

## Reading

```python
rows = (
    pools.read.db("shop")
    .table("orders")
    .select("id", "status", "customers.name")
    .left_join("customers", "orders.customer_id", "customers.id")
    .where("status", "paid")
    .where("note", "LIKE", "gift")
    .order_by("id", "DESC")
    .limit(10)
    .offset(20)
    .total()
    .get()
)
```

- `where(column, value)` means `column = value`; `where(column, op, value)`
  uses the given operator. With `LIKE` a string value is wrapped in `%...%`.
- `order_by` accepts `ASC` or `DESC` in any case; any other direction is
  logged as a warning and the sort key is ignored.
- `total()` wraps the query so that each row also carries a `total` column
  with the number of matching rows before `LIMIT` and `OFFSET`.
- Running a statement without `table(...)` raises `ValueError`.

## Writing

```python
orders = pools.write.db("shop")

new_id = orders.table("orders").insert({"customer_id": 7, "status": "new"})

orders = pools.write.db("shop")
orders.table("orders").where("id", new_id).update(
    {"status": "paid", "paid_at": "NOW()"}
)

counters = pools.write.db("shop")
counters.table("visits").where("page", "home").increase("hits", 1).update(None)

pools.write.db("shop").table("stock").upsert(
    {"sku": "A-1", "quantity": 5},
    {"quantity": 5, "updated_at": "NOW()"},
)
```

`insert` and `upsert` return the generated row id; `update` returns the number
of affected rows. Without a second argument, `upsert` updates every inserted
column with its new value; a string as second argument is used as the
`ON DUPLICATE KEY UPDATE` clause as it is.

Values that name a known SQL function, such as `NOW()`, `UUID()` or
`CURRENT_TIMESTAMP`, are written into the statement as they are; every other
value is sent as a bound parameter.

A builder keeps its conditions and assignments, so start a new one with
`db(...)` for each statement.

## Raw statements

```python
rows = pools.read.query("SELECT 1")
result = pools.write.execute("DELETE FROM `shop`.`carts` WHERE `age` > %s", 30)
print(result.last_insert_id, result.rows_affected)
```

## Shutting down

```python
pools.close()
```

`PoolList` is also a context manager that closes both pools on exit. When
`open_pools` is called from the main thread, SIGINT and SIGTERM handlers are
installed that close the pools and exit the process.

## What it does not do

The package has no command-line tool, no schema or migration support, and
no DELETE builder; use `Pool.execute` for other statements.