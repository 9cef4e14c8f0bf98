# kumono

A command-line media ripper for creator pages, single posts and Discord
servers or channels hosted on the coomer and kemono archive sites.

kumono walks every page of a target and collects the files attached to each
post. It downloads them in parallel and resumes interrupted downloads from
the `.temp` file left behind. Files whose names carry a SHA-256 hash are
checked against that hash once the download ends; on a mismatch the
temporary file is deleted and the download counts as failed. A progress bar
on standard error shows the totals and the three most recent errors.

## Installation

```
pip install .
```

This installs the `kumono` command. To run the tests, install the `test`
extra (`pip install .[test]`) and run `pytest`.

## Usage

```
kumono [OPTIONS] URL [URL ...]
```

Run without arguments, kumono prints its help and exits with status 2.

Accepted target forms (the `https://` prefix is optional, and a trailing
slash is ignored):

| Form | Meaning |
| --- | --- |
| `SITE.su/SERVICE/user/USER` | every post of a creator |
| `SITE.su/SERVICE/user/USER?o=OFFSET` | one page of posts (offset such as 0, 50, 100, 150, ...) |
| `SITE.su/SERVICE/user/USER/post/POST` | a single post |
| `SITE.su/SERVICE/user/USER/links` | every account linked to a creator |
| `kemono.su/discord/server/SERVER[/CHANNEL]` | a Discord server, or one of its channels |

`SITE` is `coomer` or `kemono`. `SERVICE` is one of `afdian`, `boosty`,
`candfans`, `discord`, `dlsite`, `fanbox`, `fansly`, `fantia`, `gumroad`,
`onlyfans`, `patreon` or `subscribestar`. Invalid URLs are reported and
skipped; the same target given twice is processed once.

Downloads are stored under `OUTPUT/SERVICE/USER/` (for Discord, `USER` is
the server id).

## Options

| Option | Default | Description |
| --- | --- | --- |
| `-V`, `--version` | | Print the version and exit |
| `-p`, `--proxy URL` | none | Proxy URL (`scheme://host:port[/path]`) |
| `-t`, `--threads N` | 256 | Simultaneous downloads, clamped to 1-4096 |
| `-o`, `--output-path DIR` | `kumono` | Base directory for downloads |
| `-l`, `--list-extensions` | off | List the file extensions of each target, download nothing |
| `-i`, `--include EXTS` | none | File extensions to include (comma separated) |
| `-e`, `--exclude EXTS` | none | File extensions to exclude (comma separated) |
| `-d`, `--download-archive` | off | Log hashes and skip files downloaded before, even if moved or deleted |
| `-m`, `--max-retries N` | 5 | Retries for a failed API request |
| `-r`, `--retry-delay SECS` | 1 | Wait between API retries |
| `--connect-timeout SECS` | 1 | Connection timeout |
| `--read-timeout SECS` | 5 | Shown by `--show-config`; not applied to requests |
| `--rate-limit-backoff SECS` | 15 | Wait after a 403 or 429 response |
| `--server-error-delay SECS` | 5 | Wait after a 5xx response to a file request |
| `-s`, `--show-config` | off | Print the effective configuration |

`--include` and `--exclude` cannot be used together. Extensions are compared
in lower case. Every duration is a whole number of seconds, and values below
one are raised to one.

## Examples

To see which file types a creator has:

```
kumono --list-extensions SITE.su/SERVICE/user/USER
```

To download only images through a local HTTP proxy, with 32 downloads at a
time:

```
kumono -t 32 -p http://localhost:8080 -i jpg,png,gif SITE.su/SERVICE/user/USER
```

To keep a download archive, so that a later run skips files you have already
fetched:

```
kumono -d SITE.su/SERVICE/user/USER
```

The archive is kept in `OUTPUT/db/SERVICE+USER.txt`, with one hash per line.
Hashes of finished and of already present files are added to it.

## Exit status

- 0 when every target was processed, or when the extension filters leave no
  file of a target (kumono then says so and stops).
- 1 when no valid target was given, when a request or file operation fails
  outright, or when any file of a target failed to download; kumono stops
  after the first target with failures.
- 2 for invalid or missing command-line arguments.
- 130 when interrupted.

## Library use

The pieces behind the command can be used on their own: `kumono.target.parse_url`
turns a URL into a `Target`, `kumono.profile.Profile.load` gathers a target's
files, `kumono.file.PostFile.download` fetches one file, and
`kumono.main.run` runs the whole program for an `Args` object from
`kumono.cli.parse_args`.