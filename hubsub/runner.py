# Copyright (C) 2009 The Open Planning Project
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation; either version 2
# of the License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the
# Free Software Foundation, Inc.,
# 51 Franklin Street, Fifth Floor,
# Boston, MA  02110-1301
# USA

import logging
import optparse
import simplejson
import sys

from hubsub.context import Context
from hubsub.errors import HubSubError
from hubsub.green import green_init

log = logging.getLogger(__name__)

COMMANDS = {}
# commands that only make sense against a store shared with 'serve'
SHARED_STORE_COMMANDS = set()

def command(name, shared_store=False):
    def register(func):
        COMMANDS[name] = func
        if shared_store:
            SHARED_STORE_COMMANDS.add(name)
        return func
    return register

def print_usage(message=None):
    print("\nusage: %s <command|help> [...] [config.yaml]" % sys.argv[0])
    if message:
        print('\n%s' % message)

def main(argv=None):
    """
    run a hubsub command in the context configured by the
    yaml file given as the last argument.
    """
    if argv is None:
        argv = sys.argv
        green_init()

    if len(argv) < 3:
        if len(argv) == 2 and argv[1] == 'help':
            return help_command(None, [])
        print_usage()
        return 0

    command_name = argv[1]
    yaml_file = argv[-1]

    context = Context.from_yaml(yaml_file)
    level = context.config['logging'].get('level', 'INFO')
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO))

    cmd = COMMANDS.get(command_name)
    if cmd is None:
        print_usage('unknown command: %s' % command_name)
        return 1

    backend = context.config['store']['backend']
    if command_name in SHARED_STORE_COMMANDS and backend == 'memory':
        print("%s needs a persistent store, the memory store is gone when this "
              "command exits.  set store.backend to couchdb in %s" % (command_name, yaml_file))
        return 1

    try:
        return cmd(context, argv[2:-1])
    except HubSubError as e:
        log.error("%s failed: %s" % (command_name, e))
        return 1
    finally:
        context.close()

def assert_no_args(orig_func):
    def new_func(context, args):
        if len(args) > 0:
            print('got unexpected argument(s): "%s"' % ' '.join(args))
            return 1
        return orig_func(context, args)
    new_func.__name__ = orig_func.__name__
    new_func.__doc__ = orig_func.__doc__
    return new_func

@command('bootstrap')
@assert_no_args
def bootstrap_command(context, args):
    "prepare the configured subscription store"
    context.bootstrap()
    return 0

@command('serve')
@assert_no_args
def serve_command(context, args):
    "serve hub callbacks and keep subscriptions renewed"
    from hubsub.wsgi import CallbackServer
    cfg = context.subscriber_config
    server = CallbackServer(context.engine, host=cfg['host'], port=int(cfg['port']))
    server.run()
    return 0

@command('subscribe', shared_store=True)
def subscribe_command(context, args):
    "subscribe to a topic: subscribe <topic> [--lease N] [--renew N] [--secret] [--head-only]"
    parser = optparse.OptionParser(usage='subscribe <topic> [options] <config.yaml>')
    parser.add_option('--lease', type='int', dest='lease_seconds', default=None)
    parser.add_option('--renew', type='int', dest='renew', default=None)
    parser.add_option('--secret', action='store_true', dest='secret', default=False)
    parser.add_option('--head-only', action='store_true', dest='head_only', default=None)
    options, rest = parser.parse_args(args)
    if len(rest) != 1:
        print('subscribe takes exactly one topic url')
        return 1

    multi = context.engine.subscribe(rest[0], lease_seconds=options.lease_seconds,
                                     renew=options.renew, secret=options.secret,
                                     head_only=options.head_only)
    for sub in multi:
        print('%s %s %s' % (sub.callback, sub.hub, sub.topic))
    return 0

@command('cancel', shared_store=True)
def cancel_command(context, args):
    "cancel a subscription: cancel <callback>"
    if len(args) != 1:
        print('cancel takes exactly one callback')
        return 1
    context.engine.cancel(args[0])
    return 0

@command('list', shared_store=True)
@assert_no_args
def list_command(context, args):
    "list all subscriptions as json"
    subs = [s.to_dict(public=True) for s in context.store.iter_subscriptions()]
    print(simplejson.dumps(subs, indent=2, sort_keys=True))
    return 0

@command('help')
def help_command(context, args):
    "display built in help"
    if len(args) == 1:
        cmd = COMMANDS.get(args[0])
        if cmd is None:
            print("unknown command %s" % args[0])
        else:
            print("%s: %s" % (args[0], cmd.__doc__))
        return 0

    print_usage()
    for name in sorted(COMMANDS.keys()):
        print("%s:  %s%s" % (name, ' ' * (15 - len(name)), COMMANDS[name].__doc__))
    print('\n')
    return 0

if __name__ == '__main__':
    sys.exit(main())
